from __future__ import annotations

from http import HTTPStatus
from typing import Any, TypeVar
from urllib.parse import urljoin

import requests
import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from iafe_core.core.domain.exceptions import InvalidInputError, NotFoundError, UpstreamUnavailableError

T = TypeVar("T", bound=BaseModel)


class BaseAPIClient:
    """
    Utilitário HTTP com:
      • timeout obrigatório
      • uma tentativa por padrão (retries=0); quem re-tenta é o gatilho externo
      • parse + validação Pydantic
      • mapeamento de falhas para a taxonomia de domínio:
          timeout / conexão / 5xx / payload inválido → UpstreamUnavailableError
          404 → NotFoundError ;  demais 4xx → InvalidInputError
    """

    def __init__(
        self,
        *,
        base_url: str,
        default_headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        retries: int = 0,
    ) -> None:
        self.log = structlog.get_logger(__name__).bind(component=type(self).__name__)
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout = timeout

        self.session = requests.Session()
        if default_headers:
            self.session.headers.update(default_headers)

        retry_cfg = Retry(
            total=retries,
            backoff_factor=0.3,
            status_forcelist=[502, 503, 504],
            allowed_methods=["GET"],
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry_cfg)
        for scheme in ("https://", "http://"):
            self.session.mount(scheme, adapter)

    # ---------------------------------------------------------------------- utils -----
    def _url(self, path: str) -> str:
        return urljoin(self.base_url, path.lstrip("/"))

    @staticmethod
    def _error_detail(resp: requests.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            return resp.text[:300]
        if isinstance(body, dict) and isinstance(body.get("errors"), list):
            return "; ".join(str(e.get("description", e)) for e in body["errors"])
        return str(body)[:300]

    # ---------------------------------------------------------------------- HTTP ------
    def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> requests.Response:
        url = self._url(path)
        log = self.log.bind(method=method, url=url)
        log.debug("http.request", params=params)

        try:
            resp = self.session.request(method, url, params=params, json=json, timeout=self.timeout)
        except requests.Timeout as exc:
            log.warning("http.timeout", timeout=self.timeout)
            raise UpstreamUnavailableError("Tempo esgotado ao contatar o provedor.", code="upstream_timeout") from exc
        except requests.RequestException as exc:
            log.warning("http.connection_error", error=str(exc))
            raise UpstreamUnavailableError("Provedor indisponível.", code="upstream_unavailable") from exc

        log.debug("http.response", status_code=resp.status_code)
        if resp.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
            log.warning("http.server_error", status_code=resp.status_code)
            raise UpstreamUnavailableError(
                "Provedor indisponível.", code="upstream_unavailable", upstream_status=resp.status_code
            )
        if resp.status_code == HTTPStatus.NOT_FOUND:
            raise NotFoundError("Recurso não encontrado no provedor.", code="upstream_not_found")
        if resp.status_code >= HTTPStatus.BAD_REQUEST:
            detail = self._error_detail(resp)
            log.warning("http.client_error", status_code=resp.status_code, detail=detail)
            raise InvalidInputError(detail, code="upstream_rejected", upstream_status=resp.status_code)
        return resp

    def _request(
        self,
        method: str,
        path: str,
        *,
        response_model: type[T],
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> T:
        resp = self._send(method, path, params=params, json=json)
        try:
            return response_model.model_validate(resp.json())
        except (ValueError, PydanticValidationError) as exc:
            # resposta 2xx que não entendemos não é uma negativa: é indisponibilidade
            self.log.error("http.invalid_payload", path=path, model=response_model.__name__, error=str(exc))
            raise UpstreamUnavailableError("Resposta inesperada do provedor.", code="upstream_bad_payload") from exc

    def _get(self, path: str, *, params: dict[str, Any] | None = None, response_model: type[T]) -> T:
        return self._request("GET", path, params=params, response_model=response_model)

    def _post(self, path: str, *, json: dict[str, Any], response_model: type[T]) -> T:
        return self._request("POST", path, json=json, response_model=response_model)

    def _delete(self, path: str) -> requests.Response:
        return self._send("DELETE", path)
