from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

from iafe_core.core.domain.entities._base import EntityMixin


@dataclass(slots=True)
class AccountEntity(EntityMixin):
    id: uuid.UUID
    email: str
    full_name: str
    phone: str | None = None
    password_hash: str | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.is_active
