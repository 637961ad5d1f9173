from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from iafe_core.core.domain.entities._base import EntityMixin
from iafe_core.core.domain.exceptions import AlreadyTerminalError, IllegalTransitionError


class SubscriptionStatus(StrEnum):
    TRIALING = "trialing"
    ACTIVE = "active"
    CANCEL_PENDING = "cancel_pending"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in (SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED)


# cancel_pending é derivado (active + cancel_at_period_end); o status gravado
# permanece active até o fim do período.
_TRANSITIONS: dict[SubscriptionStatus, frozenset[SubscriptionStatus]] = {
    SubscriptionStatus.TRIALING: frozenset(
        {SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED}
    ),
    SubscriptionStatus.ACTIVE: frozenset({SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED}),
    SubscriptionStatus.CANCEL_PENDING: frozenset(
        {SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED}
    ),
    SubscriptionStatus.CANCELLED: frozenset(),
    SubscriptionStatus.EXPIRED: frozenset(),
}


def transition(current: SubscriptionStatus | str, target: SubscriptionStatus | str) -> SubscriptionStatus:
    current, target = SubscriptionStatus(current), SubscriptionStatus(target)
    if target in _TRANSITIONS[current]:
        return target
    if current.is_terminal:
        raise AlreadyTerminalError(
            "Assinatura já cancelada.", code="already_cancelled", current=current.value
        )
    raise IllegalTransitionError(
        f"Transição inválida: {current} → {target}.", current=current.value, target=target.value
    )


@dataclass(slots=True)
class SubscriptionEntity(EntityMixin):
    id: uuid.UUID
    account_id: uuid.UUID
    status: SubscriptionStatus
    current_period_start: datetime
    current_period_end: datetime
    is_trial: bool = False
    plan_id: uuid.UUID | None = None
    trial_ends_at: datetime | None = None
    cancel_at_period_end: bool = False
    cancelled_at: datetime | None = None
    asaas_customer_id: str | None = None
    asaas_subscription_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self):
        self.status = SubscriptionStatus(self.status)

    @property
    def effective_status(self) -> SubscriptionStatus:
        if self.status is SubscriptionStatus.ACTIVE and self.cancel_at_period_end:
            return SubscriptionStatus.CANCEL_PENDING
        return self.status

    def has_access(self, now: datetime) -> bool:
        return not self.status.is_terminal and self.current_period_end > now
