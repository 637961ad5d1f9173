from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from iafe_core.core.application.cqrs import CommandDTO


@dataclass(frozen=True)
class CancelSubscriptionCommand(CommandDTO):
    account_id: str
    now: datetime | None = None


@dataclass(frozen=True)
class ExpireSubscriptionsCommand(CommandDTO):
    now: datetime | None = None
