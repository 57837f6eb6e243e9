"""
Recurring payment projection.

Expands a payment rule (start date + frequency + excluded dates) into the
concrete occurrence dates that fall inside a query window. Pure: no I/O and
the rule is never modified.

Stepping is anchored on the start date (occurrence n is start + n periods),
so a rule starting on the 31st lands on the last day of shorter months and
returns to the 31st afterwards. Calendar math must never take the calendar
down: malformed input simply ends generation.
"""
from __future__ import annotations

import logging
from datetime import MAXYEAR, MINYEAR, date
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from app.core.config import settings
from app.models.calendar import Occurrence
from app.models.payment_rule import Frequency, PaymentRule
from app.utils.dates import WEEK, add_months, add_years, to_date_key

logger = logging.getLogger(__name__)

_STEPPERS: Dict[Frequency, Callable[[date, int], date]] = {
    Frequency.WEEKLY: lambda start, n: start + WEEK * n,
    Frequency.MONTHLY: add_months,
    Frequency.YEARLY: add_years,
}


def projection_window(anchor: date, years: Optional[int] = None) -> Tuple[date, date]:
    """Look-around window used by the calendar: whole years around ``anchor``."""
    if years is None:
        years = settings.CALENDAR_LOOKAROUND_YEARS
    start_year = max(MINYEAR, anchor.year - years)
    end_year = min(MAXYEAR, anchor.year + years)
    return date(start_year, 1, 1), date(end_year, 12, 31)


def _occurrence_dates(rule: PaymentRule, window_end: date) -> Iterable[date]:
    step = _STEPPERS.get(rule.frequency)
    if rule.start_date is None or step is None:
        logger.warning(
            "Rule %s has no usable start date or frequency; nothing projected", rule.id
        )
        return
    n = 0
    while True:
        try:
            current = step(rule.start_date, n)
        except (OverflowError, ValueError):
            return
        if current > window_end:
            return
        yield current
        n += 1


def project(
    rule: PaymentRule,
    window_start: date,
    window_end: date,
    today: Optional[date] = None,
) -> List[Occurrence]:
    """
    Occurrences of ``rule`` inside ``[window_start, window_end]``.

    - Excluded dates are skipped (compared on their YYYY-MM-DD key).
    - Stopped rules only keep occurrences that are already past.
    - An occurrence is past once its calendar day has started (date <= today).
    """
    if today is None:
        today = date.today()

    excluded = {key for key in (to_date_key(d) for d in rule.excluded_dates) if key}
    occurrences: List[Occurrence] = []

    for current in _occurrence_dates(rule, window_end):
        if current < window_start:
            continue
        if current.isoformat() in excluded:
            continue
        is_past = current <= today
        if not rule.is_active and not is_past:
            # Stopped: history is kept, nothing new is generated
            break
        occurrences.append(Occurrence(rule_id=rule.id, occurs_on=current, is_past=is_past))

    return occurrences


def project_all(
    rules: Iterable[PaymentRule],
    window_start: date,
    window_end: date,
    today: Optional[date] = None,
) -> List[Tuple[PaymentRule, Occurrence]]:
    """Project every rule and return (rule, occurrence) pairs ordered by date."""
    pairs = [
        (rule, occurrence)
        for rule in rules
        for occurrence in project(rule, window_start, window_end, today)
    ]
    pairs.sort(key=lambda pair: pair[1].occurs_on)
    return pairs
