from iafe_core.adapters.context.request_context import reset_request, set_current_request


class RequestContextMiddleware:
    """Vincula request_id/path ao structlog durante a requisição e devolve o X-Request-ID."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        token = set_current_request(request)
        try:
            response = self.get_response(request)
        finally:
            reset_request(token)
        response["X-Request-ID"] = request.request_id
        return response
