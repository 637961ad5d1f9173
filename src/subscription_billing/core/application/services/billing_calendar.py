from __future__ import annotations

import calendar
from datetime import datetime


def add_months(moment: datetime, months: int) -> datetime:
    """Soma meses preservando o dia quando possível (31/01 + 1 → 28/02 ou 29/02)."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def period_months(interval: str | None) -> int:
    return 12 if interval == "yearly" else 1
