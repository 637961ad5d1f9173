"""
Fábrica de notifiers: devolve o provedor correto baseado no canal.
"""
from functools import lru_cache
from typing import Literal

from django.conf import settings

from iafe_core.adapters.notifiers.base import BaseNotifier
from iafe_core.adapters.notifiers.webhook.n8n_webhook import N8nWebhookNotifier


@lru_cache
def get_reminder_notifier() -> BaseNotifier:
    return N8nWebhookNotifier(
        endpoint=settings.REMINDER_WEBHOOK_URL,
        channel="appointment_reminder",
        timeout=settings.NOTIFIER_TIMEOUT,
    )


@lru_cache
def get_otp_notifier() -> BaseNotifier:
    return N8nWebhookNotifier(
        endpoint=settings.OTP_WEBHOOK_URL,
        channel="otp",
        timeout=settings.NOTIFIER_TIMEOUT,
    )


def get_notifier(channel: Literal["appointment_reminder", "otp"]) -> BaseNotifier:
    """
    - 'appointment_reminder' → webhook de lembretes de compromisso
    - 'otp' → webhook de código de verificação (WhatsApp)
    """
    if channel == "appointment_reminder":
        return get_reminder_notifier()
    if channel == "otp":
        return get_otp_notifier()
    raise ValueError(f"Canal de notificação desconhecido: {channel}")
