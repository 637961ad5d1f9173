from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal

from iafe_core.core.domain.entities._base import EntityMixin


@dataclass(slots=True)
class PlanEntity(EntityMixin):
    id: uuid.UUID
    name: str
    price: Decimal
    interval: str = "monthly"
    description: str | None = None
    active: bool = True
