from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from iafe_core.core.application.cqrs import QueryDTO


@dataclass(frozen=True)
class GetOpenRegistrationQuery(QueryDTO):
    email: str
    now: datetime | None = None
