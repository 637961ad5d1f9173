from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from iafe_core.core.domain.events.events import DomainEvent


# ╭──────────────────────────────────────────────╮
# │ 1. Funil de cadastro                         │
# ╰──────────────────────────────────────────────╯
@dataclass(frozen=True, kw_only=True)
class RegistrationStartedEvent(DomainEvent):
    registration_id: str
    email: str
    reused: bool


@dataclass(frozen=True, kw_only=True)
class RegistrationPaidEvent(DomainEvent):
    registration_id: str
    payment_id: str | None
    source: str  # "webhook" | "poll"
    paid_at: datetime


@dataclass(frozen=True, kw_only=True)
class RegistrationClosedEvent(DomainEvent):
    """Cadastro terminou sem conta (expired/cancelled)."""

    registration_id: str
    status: str
    source: str


@dataclass(frozen=True, kw_only=True)
class AccountProvisionedEvent(DomainEvent):
    registration_id: str
    account_id: str
    email: str
    account_created: bool


# ╭──────────────────────────────────────────────╮
# │ 2. Assinatura                                │
# ╰──────────────────────────────────────────────╯
@dataclass(frozen=True, kw_only=True)
class TrialStartedEvent(DomainEvent):
    account_id: str
    trial_ends_at: datetime


@dataclass(frozen=True, kw_only=True)
class SubscriptionCancelledEvent(DomainEvent):
    account_id: str
    subscription_id: str
    effective: str  # "immediate" | "end_of_period"
    access_until: datetime | None
