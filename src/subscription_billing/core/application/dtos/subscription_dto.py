from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from iafe_core.core.domain.events.events import DomainEvent


@dataclass(frozen=True)
class CancellationResult:
    subscription_id: str
    effective: str  # "immediate" | "end_of_period"
    access_until: datetime | None
    gateway: str  # "cancelled" | "gone" | "failed" | "skipped"
    message: str
    events: list[DomainEvent] = field(default_factory=list)

    def as_payload(self) -> dict:
        payload = {
            "message": self.message,
            "effective": self.effective,
            "gateway": self.gateway,
        }
        if self.access_until is not None:
            payload["accessUntil"] = self.access_until.isoformat()
        return payload
