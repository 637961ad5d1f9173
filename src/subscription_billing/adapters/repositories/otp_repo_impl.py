from __future__ import annotations

from datetime import datetime

from plugins.django_interface.models import OtpCode as OtpModel

from subscription_billing.core.domain.entities.otp_entity import OtpEntity
from subscription_billing.core.domain.repositories.otp_repository import OtpRepository


class OtpRepoImpl(OtpRepository):
    def delete_unverified(self, phone: str) -> int:
        deleted, _ = OtpModel.objects.filter(phone=phone, verified=False).delete()
        return deleted

    def create(self, entity: OtpEntity) -> OtpEntity:
        data = entity.to_dict()
        data.pop("created_at", None)
        return OtpEntity.from_model(OtpModel.objects.create(**data))

    def mark_verified(self, phone: str, code: str, now: datetime) -> bool:
        candidate = (
            OtpModel.objects.filter(phone=phone, code=code, verified=False, expires_at__gt=now)
            .order_by("-created_at")
            .values_list("id", flat=True)
            .first()
        )
        if candidate is None:
            return False
        rows = OtpModel.objects.filter(id=candidate, verified=False).update(verified=True, verified_at=now)
        return rows == 1

    def consume(self, phone: str, code: str, now: datetime) -> bool:
        candidate = (
            OtpModel.objects.filter(
                phone=phone, code=code, verified=True, consumed_at__isnull=True, expires_at__gt=now
            )
            .order_by("-created_at")
            .values_list("id", flat=True)
            .first()
        )
        if candidate is None:
            return False
        # consumo único: duas requisições concorrentes não consomem o mesmo código
        rows = OtpModel.objects.filter(id=candidate, consumed_at__isnull=True).update(consumed_at=now)
        return rows == 1
