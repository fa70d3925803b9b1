"""Date helpers for the shift grid."""

from __future__ import annotations

from datetime import date, timedelta

WEEK_STARTS = {
    "monday": 0,
    "sunday": 6,
}


def parse_iso_date(value: str | date) -> date:
    """Parse a YYYY-MM-DD string (dates pass through unchanged)."""
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def align_to_week_start(day: date, week_start: str = "monday") -> date:
    """Return the first day of the week containing ``day``."""
    try:
        start_index = WEEK_STARTS[week_start]
    except KeyError:
        raise ValueError(f"Unknown week start: {week_start!r}") from None
    diff = (day.weekday() - start_index) % 7
    return day - timedelta(days=diff)


def date_range(start: date, days: int) -> list[date]:
    """Return ``days`` consecutive dates beginning at ``start``."""
    return [start + timedelta(days=offset) for offset in range(days)]


def is_weekday(day: date) -> bool:
    """Monday to Friday."""
    return day.weekday() < 5
