from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from iafe_core.core.application.cqrs import CommandDTO


@dataclass(frozen=True)
class IssueOtpCommand(CommandDTO):
    phone: str
    email: str | None = None
    full_name: str | None = None
    country: str | None = None
    now: datetime | None = None


@dataclass(frozen=True)
class VerifyOtpCommand(CommandDTO):
    phone: str
    code: str
    now: datetime | None = None
