from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from subscription_billing.core.domain.entities.subscription_entity import (
    SubscriptionEntity,
    SubscriptionStatus,
)


class SubscriptionRepository(ABC):
    @abstractmethod
    def find_by_account(self, account_id: str) -> SubscriptionEntity | None:
        ...

    @abstractmethod
    def get_or_create(self, entity: SubscriptionEntity) -> tuple[SubscriptionEntity, bool]:
        """Uma assinatura por conta: devolve a existente se já houver."""
        ...

    @abstractmethod
    def compare_and_set(
        self,
        subscription_id: str,
        expected: SubscriptionStatus,
        target: SubscriptionStatus,
        **changes: Any,
    ) -> bool:
        """Aplica `target` somente se o status gravado for `expected`."""
        ...

    @abstractmethod
    def schedule_cancellation(self, subscription_id: str, now: datetime) -> bool:
        """cancel_at_period_end=True, condicionado a não estar agendado nem terminal."""
        ...

    @abstractmethod
    def list_period_ended(self, now: datetime, limit: int = 500) -> list[SubscriptionEntity]:
        """Trials e cancelamentos agendados cujo período terminou."""
        ...
