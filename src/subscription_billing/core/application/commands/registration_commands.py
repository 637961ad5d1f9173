from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from iafe_core.core.application.cqrs import CommandDTO


@dataclass(frozen=True)
class StartRegistrationCommand(CommandDTO):
    """Inicia (ou retoma) o funil de cadastro pago para um e-mail."""

    payload: dict[str, Any]
    now: datetime | None = None


@dataclass(frozen=True)
class CreateChargeCommand(CommandDTO):
    registration_id: str
    billing_type: str
    now: datetime | None = None


@dataclass(frozen=True)
class RegisterTrialCommand(CommandDTO):
    payload: dict[str, Any]
    now: datetime | None = None


@dataclass(frozen=True)
class ReconcileWebhookCommand(CommandDTO):
    payload: dict[str, Any] = field(default_factory=dict)
    now: datetime | None = None


@dataclass(frozen=True)
class PollPaymentStatusCommand(CommandDTO):
    """Consulta de status feita pelo cliente; pode concluir a conciliação."""

    registration_id: str | None = None
    payment_id: str | None = None
    now: datetime | None = None


@dataclass(frozen=True)
class ExpireRegistrationsCommand(CommandDTO):
    now: datetime | None = None


@dataclass(frozen=True)
class ResumeProvisioningCommand(CommandDTO):
    now: datetime | None = None
    limit: int = 100
