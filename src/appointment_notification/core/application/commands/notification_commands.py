from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from iafe_core.core.application.cqrs import CommandDTO


@dataclass(frozen=True)
class RunAppointmentNotificationsCommand(CommandDTO):
    """Uma passada da varredura de lembretes; `dry_run` só lista o que seria enviado."""

    now: datetime | None = None
    dry_run: bool = False
