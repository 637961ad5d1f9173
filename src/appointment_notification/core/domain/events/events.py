from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from iafe_core.core.domain.events.events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class ReminderDispatchedEvent(DomainEvent):
    appointment_id: str
    notification_type: str
    success: bool
    scheduled_at: datetime
