from __future__ import annotations

from datetime import datetime
from typing import Any

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Q
from plugins.django_interface.models import Subscription as SubscriptionModel

from subscription_billing.core.domain.entities.subscription_entity import (
    SubscriptionEntity,
    SubscriptionStatus,
    transition,
)
from subscription_billing.core.domain.repositories.subscription_repository import SubscriptionRepository


class SubscriptionRepoImpl(SubscriptionRepository):
    def find_by_account(self, account_id: str) -> SubscriptionEntity | None:
        try:
            m = SubscriptionModel.objects.filter(account_id=account_id).first()
        except (ValueError, DjangoValidationError):
            return None
        return SubscriptionEntity.from_model(m) if m else None

    def get_or_create(self, entity: SubscriptionEntity) -> tuple[SubscriptionEntity, bool]:
        defaults = entity.to_dict()
        for key in ("id", "account_id", "created_at", "updated_at"):
            defaults.pop(key)
        defaults["status"] = SubscriptionStatus(entity.status).value
        try:
            with transaction.atomic():
                m, created = SubscriptionModel.objects.get_or_create(
                    account_id=entity.account_id,
                    defaults={"id": entity.id, **defaults},
                )
        except IntegrityError:
            m, created = SubscriptionModel.objects.get(account_id=entity.account_id), False
        return SubscriptionEntity.from_model(m), created

    def compare_and_set(
        self,
        subscription_id: str,
        expected: SubscriptionStatus,
        target: SubscriptionStatus,
        **changes: Any,
    ) -> bool:
        target = transition(expected, target)
        rows = SubscriptionModel.objects.filter(
            id=subscription_id, status=SubscriptionStatus(expected).value
        ).update(status=target.value, **changes)
        return rows == 1

    def schedule_cancellation(self, subscription_id: str, now: datetime) -> bool:
        rows = (
            SubscriptionModel.objects.filter(id=subscription_id, cancel_at_period_end=False)
            .exclude(status__in=[SubscriptionStatus.CANCELLED.value, SubscriptionStatus.EXPIRED.value])
            .update(cancel_at_period_end=True, cancelled_at=now, updated_at=now)
        )
        return rows == 1

    def list_period_ended(self, now: datetime, limit: int = 500) -> list[SubscriptionEntity]:
        qs = (
            SubscriptionModel.objects.filter(current_period_end__lte=now)
            .filter(
                Q(status=SubscriptionStatus.TRIALING.value)
                | Q(status=SubscriptionStatus.ACTIVE.value, cancel_at_period_end=True)
            )
            .order_by("current_period_end")[:limit]
        )
        return [SubscriptionEntity.from_model(m) for m in qs]
