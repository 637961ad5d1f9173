import structlog
from iafe_core.core.domain.exceptions import ProvisioningError, UpstreamUnavailableError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = structlog.get_logger(__name__)


def provisioning_exception_handler(exc, context):
    """
    Erros de domínio → HTTP.

    Views de leitura marcam `upstream_pending_response = True`: gateway fora
    do ar vira 202 "pending" (o cliente consulta de novo), nunca um resultado
    negativo.
    """
    if not isinstance(exc, ProvisioningError):
        return exception_handler(exc, context)

    view = context.get("view")
    if isinstance(exc, UpstreamUnavailableError):
        logger.warning("api.upstream_unavailable", code=exc.code, view=type(view).__name__)
        if getattr(view, "upstream_pending_response", False):
            return Response(
                {"status": "pending", "retry": True, "error": exc.code},
                status=status.HTTP_202_ACCEPTED,
            )
    return Response(exc.as_dict(), status=exc.http_status)
