from __future__ import annotations

from typing import Any


class ProvisioningError(Exception):
    """Base de todos os erros de provisionamento/conciliação.

    `code` é estável e pode ser exposto ao cliente da API.
    """

    code: str = "provisioning_error"
    http_status: int = 400

    def __init__(self, message: str = "", *, code: str | None = None, **context: Any) -> None:
        if code:
            self.code = code
        self.message = message or self.code
        self.context = context
        super().__init__(self.message)

    def as_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.context}


class NotFoundError(ProvisioningError):
    """Nenhum registro/conta corresponde ao identificador."""

    code = "not_found"
    http_status = 404


class IllegalTransitionError(ProvisioningError):
    """Transição fora da tabela de estados."""

    code = "illegal_transition"
    http_status = 409


class AlreadyTerminalError(IllegalTransitionError):
    """Registro já está em estado terminal (registered/expired/cancelled)."""

    code = "already_terminal"


class UpstreamUnavailableError(ProvisioningError):
    """Falha/timeout em chamada externa. Sempre re-tentável, nunca um resultado negativo."""

    code = "upstream_unavailable"
    http_status = 503


class InvalidInputError(ProvisioningError):
    """Entrada malformada; rejeitada antes de qualquer mutação."""

    code = "invalid_input"
    http_status = 400


class ConflictError(ProvisioningError):
    """Escrita condicionada afetou zero linhas: outro escritor venceu a corrida.

    Tratado como sucesso-sem-efeito por quem perdeu; nunca chega ao cliente.
    """

    code = "conflict"
    http_status = 409
