from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime


# ───────────────────────────────────────────────
# Event Base
# ───────────────────────────────────────────────
@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    event_id: uuid.UUID = field(default_factory=uuid.uuid4)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))


# ╭──────────────────────────────────────────────╮
# │ Contas                                       │
# ╰──────────────────────────────────────────────╯
@dataclass(frozen=True, kw_only=True)
class AccountCreatedEvent(DomainEvent):
    account_id: str
    email: str
    origin: str  # "trial" | "paid"
