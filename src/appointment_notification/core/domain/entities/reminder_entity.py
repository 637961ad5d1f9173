from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum

from appointment_notification.core.domain.entities.appointment_entity import AppointmentEntity


class NotificationType(StrEnum):
    ONE_HOUR_FIFTEEN_BEFORE = "1_hour_15_minutes_before"
    ONE_HOUR_BEFORE = "1_hour_before"
    FIFTEEN_MINUTES_BEFORE = "15_minutes_before"
    NOW = "now"


# antecedência de cada lembrete em relação ao horário do compromisso
REMINDER_OFFSETS: dict[NotificationType, timedelta] = {
    NotificationType.ONE_HOUR_FIFTEEN_BEFORE: timedelta(minutes=75),
    NotificationType.ONE_HOUR_BEFORE: timedelta(minutes=60),
    NotificationType.FIFTEEN_MINUTES_BEFORE: timedelta(minutes=15),
    NotificationType.NOW: timedelta(0),
}


@dataclass(frozen=True)
class DueReminder:
    appointment: AppointmentEntity
    notification_type: NotificationType
    scheduled_at: datetime
    target_at: datetime
