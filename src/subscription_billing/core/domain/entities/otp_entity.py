from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

from iafe_core.core.domain.entities._base import EntityMixin


@dataclass(slots=True)
class OtpEntity(EntityMixin):
    id: uuid.UUID
    phone: str
    code: str
    expires_at: datetime
    email: str | None = None
    full_name: str | None = None
    verified: bool = False
    verified_at: datetime | None = None
    consumed_at: datetime | None = None
    created_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now
