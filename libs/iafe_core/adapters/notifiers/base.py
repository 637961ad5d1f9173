import time
from abc import ABC, abstractmethod
from http import HTTPStatus

import httpx
import structlog
from prometheus_client import Counter, Histogram

logger = structlog.get_logger()

REQ_LATENCY = Histogram("notifier_request_seconds", "Latency", ["provider", "channel"])
REQ_SUCCESS = Counter  ("notifier_success_total",   "Success", ["provider", "channel"])
REQ_FAILURE = Counter  ("notifier_failure_total",   "Failure", ["provider", "channel"])


class BaseNotifier(ABC):
    """
    Envio de notificações por HTTP.

    Uma única tentativa com timeout: o resultado é registrado por quem chama
    e não é re-tentado aqui.
    """

    DEFAULT_TIMEOUT = 10.0

    def __init__(self, provider: str, channel: str, timeout: float | None = None) -> None:
        self.provider = provider
        self.channel  = channel
        self.timeout  = timeout or self.DEFAULT_TIMEOUT

    def _request(self, method: str, url: str, **kw) -> httpx.Response:
        start = time.perf_counter()
        try:
            resp = httpx.request(method, url, timeout=self.timeout, **kw)
            if resp.status_code >= HTTPStatus.BAD_REQUEST:
                raise httpx.HTTPStatusError(
                    f"Bad status {resp.status_code}", request=resp.request, response=resp
                )
            REQ_SUCCESS.labels(self.provider, self.channel).inc()
            return resp
        except Exception:
            REQ_FAILURE.labels(self.provider, self.channel).inc()
            raise
        finally:
            REQ_LATENCY.labels(self.provider, self.channel).observe(time.perf_counter() - start)

    @abstractmethod
    def send(self, payload: dict) -> str:
        """Envia a notificação e devolve o corpo da resposta do provedor."""
        ...
