"""
Vocabulário do Asaas → decisão interna.

Fail-closed: qualquer status/evento desconhecido é "ainda não pago".
Um status novo do gateway nunca cria conta por engano; no pior caso o
cadastro espera o próximo webhook ou a próxima consulta.
"""
from __future__ import annotations

import unicodedata
from enum import StrEnum

import structlog

logger = structlog.get_logger(__name__)

PAID_STATUSES = frozenset({"CONFIRMED", "RECEIVED", "RECEIVED_IN_CASH"})

# conhecidos e não pagos; servem só para não poluir o log com "unknown"
_NOT_PAID_STATUSES = frozenset({
    "PENDING", "OVERDUE", "REFUNDED", "REFUND_REQUESTED", "REFUND_IN_PROGRESS",
    "CHARGEBACK_REQUESTED", "CHARGEBACK_DISPUTE", "AWAITING_CHARGEBACK_REVERSAL",
    "DUNNING_REQUESTED", "DUNNING_RECEIVED", "AWAITING_RISK_ANALYSIS", "DELETED",
})

PAID_EVENTS = frozenset({"PAYMENT_CONFIRMED", "PAYMENT_RECEIVED", "PAYMENT_RECEIVED_IN_CASH"})
EXPIRED_EVENTS = frozenset({"PAYMENT_OVERDUE"})
CANCELLED_EVENTS = frozenset({"PAYMENT_DELETED", "PAYMENT_REFUNDED"})


class WebhookOutcome(StrEnum):
    PAID = "paid"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    IGNORED = "ignored"


def _norm(txt: str | None) -> str:
    ascii_txt = unicodedata.normalize("NFKD", txt or "").encode("ascii", "ignore").decode()
    return ascii_txt.strip().upper().replace(" ", "_").replace("-", "_")


def is_paid_status(raw_status: str | None) -> bool:
    norm = _norm(raw_status)
    if norm in PAID_STATUSES:
        return True
    if norm and norm not in _NOT_PAID_STATUSES:
        logger.warning("payment_status.unknown", raw_status=raw_status)
    return False


def classify_webhook(event: str | None, payment_status: str | None) -> WebhookOutcome:
    norm_event = _norm(event)
    if norm_event in PAID_EVENTS:
        return WebhookOutcome.PAID
    if norm_event in EXPIRED_EVENTS:
        return WebhookOutcome.EXPIRED
    if norm_event in CANCELLED_EVENTS:
        return WebhookOutcome.CANCELLED
    # eventos genéricos (PAYMENT_UPDATED...) ainda podem trazer status pago
    if is_paid_status(payment_status):
        return WebhookOutcome.PAID
    return WebhookOutcome.IGNORED
