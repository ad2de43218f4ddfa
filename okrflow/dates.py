"""
Week and fiscal-quarter helpers.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional

_MONTH_ABBR = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def week_start(day: Optional[date] = None) -> date:
    """Monday of the ISO week containing ``day``."""
    day = day or utc_today()
    if isinstance(day, datetime):
        day = day.date()
    return day - timedelta(days=day.weekday())


def current_week_iso(day: Optional[date] = None) -> str:
    day = day or utc_today()
    year, week, _ = day.isocalendar()
    return f"{year}-W{week:02d}"


def fiscal_quarter(day: date, start_month: int = 4) -> int:
    """Fiscal quarter (1-4) of ``day`` for a fiscal year starting in ``start_month``."""
    offset = (day.month - start_month) % 12
    return offset // 3 + 1


def fiscal_quarter_label(quarter: int, start_month: int = 4) -> str:
    first = (start_month - 1 + (quarter - 1) * 3) % 12
    last = (first + 2) % 12
    return f"Q{quarter} ({_MONTH_ABBR[first]} - {_MONTH_ABBR[last]})"
