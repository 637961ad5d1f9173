from __future__ import annotations

from dataclasses import dataclass

from iafe_core.core.application.cqrs import QueryDTO


@dataclass(frozen=True)
class ResolveAccountByPhoneQuery(QueryDTO):
    phone: str
