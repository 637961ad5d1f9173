from __future__ import annotations

from dataclasses import dataclass, field

from iafe_core.core.domain.events.events import DomainEvent


@dataclass(frozen=True)
class ReminderOutcome:
    appointment_id: str
    notification_type: str
    outcome: str  # sent | failed | skipped | due
    response: str | None = None


@dataclass
class SweepReport:
    checked: int = 0
    dry_run: bool = False
    items: list[ReminderOutcome] = field(default_factory=list)
    events: list[DomainEvent] = field(default_factory=list)

    def count(self, outcome: str) -> int:
        return sum(1 for i in self.items if i.outcome == outcome)

    def as_payload(self) -> dict:
        return {
            "checked_appointments": self.checked,
            "dry_run": self.dry_run,
            "sent": self.count("sent"),
            "failed": self.count("failed"),
            "skipped": self.count("skipped"),
            "due": self.count("due"),
            "items": [
                {
                    "appointment_id": i.appointment_id,
                    "notification_type": i.notification_type,
                    "outcome": i.outcome,
                }
                for i in self.items
            ],
        }
