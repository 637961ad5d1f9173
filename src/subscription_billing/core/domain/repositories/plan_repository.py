from abc import ABC, abstractmethod

from subscription_billing.core.domain.entities.plan_entity import PlanEntity


class PlanRepository(ABC):
    @abstractmethod
    def find_active(self, plan_id: str) -> PlanEntity | None:
        """Plano ativo por ID."""
        ...

    @abstractmethod
    def find_default(self) -> PlanEntity | None:
        """Plano mensal ativo mais barato."""
        ...

    @abstractmethod
    def find_by_id(self, plan_id: str) -> PlanEntity | None:
        ...
