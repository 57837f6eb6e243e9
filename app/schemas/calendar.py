from datetime import date
from typing import Dict, List

from pydantic import BaseModel

from app.models.calendar import ClassifiedEntry, LedgerSummary
from app.schemas.obligation import ObligationResponse


class RuleCounts(BaseModel):
    active: int = 0
    cancelled: int = 0
    active_by_frequency: Dict[str, int] = {}


class CalendarMonthResponse(BaseModel):
    """Everything the calendar screen needs for one month."""
    year: int
    month: int
    today: date
    window_start: date
    window_end: date
    entries: List[ClassifiedEntry]
    summary: LedgerSummary
    outstanding_obligations: List[ObligationResponse]
    rule_counts: RuleCounts


class CalendarDayResponse(BaseModel):
    day: date
    today: date
    entries: List[ClassifiedEntry]
