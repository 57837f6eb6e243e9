"""
Calendar-date helpers.

Every date in the calendar is a plain ``datetime.date``. Strings coming from
the API or the database are reduced to their calendar-date part as written
(``"2024-03-05T23:30:00-05:00"`` -> ``2024-03-05``); no timezone shift is
ever applied, so exclusion keys, occurrence keys and obligation due dates
all compare on the same representation.
"""
from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Any, Optional

WEEK = timedelta(days=7)


def parse_calendar_date(value: Any) -> Optional[date]:
    """Return the calendar date of ``value`` or None when it cannot be read."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if "T" in text:
            text = text.split("T", 1)[0]
        elif " " in text:
            text = text.split(" ", 1)[0]
        try:
            return datetime.strptime(text, "%Y-%m-%d").date()
        except ValueError:
            return None
    return None


def to_date_key(value: Any) -> Optional[str]:
    """Normalize a date, datetime or ISO string to its ``YYYY-MM-DD`` key."""
    parsed = parse_calendar_date(value)
    return parsed.isoformat() if parsed else None


def _clamp_day(year: int, month: int, day: int) -> date:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(max(day, 1), last_day))


def add_months(anchor: date, months: int) -> date:
    """Shift ``anchor`` by whole months, keeping its day-of-month where the month allows."""
    total_months = anchor.year * 12 + anchor.month - 1 + months
    year, month = divmod(total_months, 12)
    return _clamp_day(year, month + 1, anchor.day)


def add_years(anchor: date, years: int) -> date:
    try:
        return anchor.replace(year=anchor.year + years)
    except ValueError:
        # Feb 29th => Feb 28th in non-leap years
        return anchor.replace(year=anchor.year + years, day=28)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a calendar month."""
    return date(year, month, 1), _clamp_day(year, month, 31)
