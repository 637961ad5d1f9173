from __future__ import annotations

import datetime as dt
import uuid
from dataclasses import dataclass

from iafe_core.core.domain.entities._base import EntityMixin


@dataclass(slots=True)
class AppointmentEntity(EntityMixin):
    id: uuid.UUID
    account_id: uuid.UUID
    title: str
    date: dt.date
    time: dt.time | None = None
    status: str = "pending"
    description: str | None = None
    # dados do dono (para o lembrete no WhatsApp)
    owner_phone: str | None = None
    owner_name: str | None = None
    created_at: dt.datetime | None = None
