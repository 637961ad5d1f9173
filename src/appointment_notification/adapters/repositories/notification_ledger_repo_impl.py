from __future__ import annotations

from datetime import datetime

import structlog
from django.db import IntegrityError, transaction
from plugins.django_interface.models import AppointmentNotificationSent

from appointment_notification.core.domain.repositories.notification_ledger_repository import (
    NotificationLedgerRepository,
)

logger = structlog.get_logger(__name__)


class NotificationLedgerRepoImpl(NotificationLedgerRepository):
    def exists(self, appointment_id: str, notification_type: str) -> bool:
        return AppointmentNotificationSent.objects.filter(
            appointment_id=appointment_id, notification_type=notification_type
        ).exists()

    def claim(self, appointment_id: str, notification_type: str, now: datetime) -> bool:
        # UK (appointment, notification_type): duas varreduras simultâneas não inserem a mesma chave
        try:
            with transaction.atomic():
                _, created = AppointmentNotificationSent.objects.get_or_create(
                    appointment_id=appointment_id,
                    notification_type=notification_type,
                    defaults={"sent_at": now},
                )
        except IntegrityError:
            created = False
        if not created:
            logger.info("reminder.conflict", appointment_id=appointment_id, notification_type=notification_type)
        return created

    def record_outcome(self, appointment_id: str, notification_type: str, *, success: bool, response: str) -> None:
        AppointmentNotificationSent.objects.filter(
            appointment_id=appointment_id, notification_type=notification_type
        ).update(success=success, webhook_response=response)
