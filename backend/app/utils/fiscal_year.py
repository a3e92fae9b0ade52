"""Fiscal calendar helpers.

A fiscal year is named after the calendar year in which it ends. With the
default November start, FY2026 runs Nov 2025 through Oct 2026.
"""

from __future__ import annotations

from calendar import monthrange
from datetime import date


CALENDAR_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
DEFAULT_START_MONTH = "Nov"
MIN_FISCAL_YEAR = 2000
MAX_FISCAL_YEAR = 2100

_MONTH_INDEX = {name: idx for idx, name in enumerate(CALENDAR_MONTHS)}


def _start_index(start_month: str | None) -> int:
    return _MONTH_INDEX.get(start_month or DEFAULT_START_MONTH, _MONTH_INDEX[DEFAULT_START_MONTH])


def generate_fiscal_months(start_month: str | None = DEFAULT_START_MONTH) -> list[str]:
    start_idx = _start_index(start_month)
    return [CALENDAR_MONTHS[(start_idx + offset) % 12] for offset in range(12)]


def end_month(start_month: str | None = DEFAULT_START_MONTH) -> str:
    return generate_fiscal_months(start_month)[-1]


def fiscal_month_index(month: str, start_month: str | None = DEFAULT_START_MONTH) -> int:
    months = generate_fiscal_months(start_month)
    return months.index(month) if month in months else -1


def calendar_to_fiscal(value: date, start_month: str | None = DEFAULT_START_MONTH) -> tuple[int, str]:
    """Map a calendar date to ``(fiscal_year, month_name)``."""
    cal_idx = value.month - 1
    fiscal_year = value.year + 1 if cal_idx >= _start_index(start_month) else value.year
    return fiscal_year, CALENDAR_MONTHS[cal_idx]


def fiscal_to_calendar(fiscal_year: int, month: str, start_month: str | None = DEFAULT_START_MONTH) -> date:
    """First day of ``month`` within ``fiscal_year``."""
    cal_idx = _MONTH_INDEX[month]
    cal_year = fiscal_year - 1 if cal_idx >= _start_index(start_month) else fiscal_year
    return date(cal_year, cal_idx + 1, 1)


def is_future_month(
    fiscal_year: int,
    month: str,
    start_month: str | None = DEFAULT_START_MONTH,
    today: date | None = None,
) -> bool:
    return fiscal_to_calendar(fiscal_year, month, start_month) > (today or date.today())


def is_past_month(
    fiscal_year: int,
    month: str,
    start_month: str | None = DEFAULT_START_MONTH,
    today: date | None = None,
) -> bool:
    first = fiscal_to_calendar(fiscal_year, month, start_month)
    last = first.replace(day=monthrange(first.year, first.month)[1])
    return last < (today or date.today())


def current_fiscal_month(start_month: str | None = DEFAULT_START_MONTH, today: date | None = None) -> tuple[int, str]:
    return calendar_to_fiscal(today or date.today(), start_month)


def parse_year(value: object) -> int | None:
    try:
        year = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    if year < MIN_FISCAL_YEAR or year > MAX_FISCAL_YEAR:
        return None
    return year


def is_valid_month(month: str | None) -> bool:
    return month in _MONTH_INDEX
