import hmac

from django.conf import settings
from rest_framework.permissions import BasePermission


def _matches(expected: str, received: str | None) -> bool:
    # token não configurado = rota fechada
    return bool(expected) and hmac.compare_digest(expected.encode(), (received or "").encode())


class HasSweepToken(BasePermission):
    """Disparo manual/externo das varreduras: header X-Sweep-Token = settings.SWEEP_TOKEN."""

    def has_permission(self, request, view):
        return _matches(settings.SWEEP_TOKEN, request.headers.get("X-Sweep-Token"))


class HasServiceToken(BasePermission):
    """Integrações internas (agente do WhatsApp): header X-Service-Token = settings.SERVICE_TOKEN."""

    def has_permission(self, request, view):
        return _matches(settings.SERVICE_TOKEN, request.headers.get("X-Service-Token"))


class IsAsaasWebhook(BasePermission):
    """
    Webhook do Asaas: se ASAAS_WEBHOOK_TOKEN estiver configurado, o header
    `asaas-access-token` precisa bater. Sem token configurado, aceita tudo.
    """

    message = "Token de webhook inválido."

    def has_permission(self, request, view):
        expected = settings.ASAAS_WEBHOOK_TOKEN
        if not expected:
            return True
        return _matches(expected, request.headers.get("asaas-access-token"))
