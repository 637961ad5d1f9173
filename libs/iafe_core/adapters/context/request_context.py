import contextvars
import uuid

import structlog

_current_request = contextvars.ContextVar("current_request", default=None)


def set_current_request(request):
    """
    Guarda o request e vincula request_id/path ao contexto do structlog.
    Retorna o token para `reset_request`.
    """
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    request.request_id = request_id
    structlog.contextvars.bind_contextvars(request_id=request_id, path=request.path)
    return _current_request.set(request)


def get_current_request():
    return _current_request.get()


def reset_request(token):
    structlog.contextvars.unbind_contextvars("request_id", "path")
    _current_request.reset(token)
