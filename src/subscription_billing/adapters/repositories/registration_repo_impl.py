from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

import structlog
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Q
from iafe_core.core.domain.exceptions import ConflictError
from plugins.django_interface.models import Registration as RegistrationModel

from subscription_billing.core.domain.entities.registration_entity import (
    OPEN_STATUSES,
    RegistrationEntity,
    RegistrationStatus,
    transition,
)
from subscription_billing.core.domain.repositories.registration_repository import RegistrationRepository

logger = structlog.get_logger(__name__)

_OPEN = [s.value for s in OPEN_STATUSES]

# campos zerados quando um cadastro pendente é reaproveitado
_CHARGE_FIELDS = (
    "asaas_payment_id",
    "payment_method",
    "invoice_url",
    "boleto_url",
    "pix_code",
    "pix_qr_code",
)

_NO_CHARGE = Q(asaas_payment_id__isnull=True) | Q(asaas_payment_id="")


class RegistrationRepoImpl(RegistrationRepository):
    @staticmethod
    def _to_entity(m: RegistrationModel | None) -> RegistrationEntity | None:
        return RegistrationEntity.from_model(m) if m else None

    # ─── leitura ────────────────────────────────────────────────
    def find_by_id(self, registration_id: str) -> RegistrationEntity | None:
        try:
            return self._to_entity(RegistrationModel.objects.get(id=registration_id))
        except (RegistrationModel.DoesNotExist, ValueError, DjangoValidationError):
            return None

    def find_by_payment_id(self, payment_id: str) -> RegistrationEntity | None:
        if not payment_id:
            return None
        return self._to_entity(
            RegistrationModel.objects.filter(asaas_payment_id=payment_id).order_by("-created_at").first()
        )

    def find_open_by_email(self, email: str) -> RegistrationEntity | None:
        return self._to_entity(
            RegistrationModel.objects.filter(email=email.strip().lower(), status__in=_OPEN).first()
        )

    def find_open_by_customer(self, customer_id: str) -> RegistrationEntity | None:
        if not customer_id:
            return None
        return self._to_entity(
            RegistrationModel.objects.filter(asaas_customer_id=customer_id, status__in=_OPEN)
            .order_by("-created_at")
            .first()
        )

    # ─── escrita ────────────────────────────────────────────────
    def create(self, entity: RegistrationEntity) -> RegistrationEntity:
        data = entity.to_dict()
        for auto in ("created_at", "updated_at"):
            data.pop(auto, None)
        data["status"] = RegistrationStatus(entity.status).value
        try:
            with transaction.atomic():
                m = RegistrationModel.objects.create(**data)
        except IntegrityError as exc:
            logger.info("registration.create_conflict", email=entity.email)
            raise ConflictError("Já existe um cadastro aberto para este e-mail.", email=entity.email) from exc
        return RegistrationEntity.from_model(m)

    def restart_pending(self, registration_id: str, now: datetime, **fields: Any) -> bool:
        changes = dict.fromkeys(_CHARGE_FIELDS)
        changes.update(fields)
        return self._guarded_update(registration_id, RegistrationStatus.PENDING_PAYMENT, now, **changes)

    def attach_charge(self, registration_id: str, now: datetime, **fields: Any) -> bool:
        return self._guarded_update(registration_id, RegistrationStatus.PENDING_PAYMENT, now, **fields)

    def compare_and_set(
        self,
        registration_id: str,
        expected: RegistrationStatus,
        target: RegistrationStatus,
        now: datetime,
        **changes: Any,
    ) -> bool:
        target = transition(expected, target)
        return self._guarded_update(registration_id, expected, now, status=target.value, **changes)

    def claim_provisioning(self, registration_id: str, now: datetime, lease: timedelta) -> bool:
        rows = (
            RegistrationModel.objects.filter(id=registration_id, status=RegistrationStatus.PAID.value)
            .filter(Q(provisioning_claimed_at__isnull=True) | Q(provisioning_claimed_at__lte=now - lease))
            .update(provisioning_claimed_at=now, updated_at=now)
        )
        return rows == 1

    def expire_overdue(self, now: datetime) -> int:
        transition(RegistrationStatus.PENDING_PAYMENT, RegistrationStatus.EXPIRED)
        return (
            RegistrationModel.objects.filter(status=RegistrationStatus.PENDING_PAYMENT.value, expires_at__lte=now)
            .filter(_NO_CHARGE)
            .update(status=RegistrationStatus.EXPIRED.value, updated_at=now)
        )

    def list_overdue_charged(self, now: datetime, limit: int = 100) -> list[RegistrationEntity]:
        qs = (
            RegistrationModel.objects.filter(status=RegistrationStatus.PENDING_PAYMENT.value, expires_at__lte=now)
            .exclude(_NO_CHARGE)
            .order_by("expires_at")[:limit]
        )
        return [RegistrationEntity.from_model(m) for m in qs]

    def list_stalled_paid(self, now: datetime, lease: timedelta, limit: int = 100) -> list[RegistrationEntity]:
        qs = (
            RegistrationModel.objects.filter(status=RegistrationStatus.PAID.value)
            .filter(Q(provisioning_claimed_at__isnull=True) | Q(provisioning_claimed_at__lte=now - lease))
            .order_by("paid_at")[:limit]
        )
        return [RegistrationEntity.from_model(m) for m in qs]

    # ─── util ───────────────────────────────────────────────────
    @staticmethod
    def _guarded_update(registration_id: str, expected: RegistrationStatus, now: datetime, **changes: Any) -> bool:
        """UPDATE ... WHERE id = ? AND status = ? ; True se exatamente uma linha mudou."""
        rows = RegistrationModel.objects.filter(id=registration_id, status=RegistrationStatus(expected).value).update(
            updated_at=now, **changes
        )
        return rows == 1
