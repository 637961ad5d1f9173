from django.core.exceptions import ValidationError as DjangoValidationError
from plugins.django_interface.models import Plan as PlanModel

from subscription_billing.core.domain.entities.plan_entity import PlanEntity
from subscription_billing.core.domain.repositories.plan_repository import PlanRepository


class PlanRepoImpl(PlanRepository):
    def find_by_id(self, plan_id: str) -> PlanEntity | None:
        try:
            return PlanEntity.from_model(PlanModel.objects.get(id=plan_id))
        except (PlanModel.DoesNotExist, ValueError, DjangoValidationError):
            return None

    def find_active(self, plan_id: str) -> PlanEntity | None:
        plan = self.find_by_id(plan_id)
        return plan if plan and plan.active else None

    def find_default(self) -> PlanEntity | None:
        m = (
            PlanModel.objects.filter(active=True, interval=PlanModel.Interval.MONTHLY)
            .order_by("price", "created_at")
            .first()
        )
        return PlanEntity.from_model(m) if m else None
