"""
CalendarService - the read side of the payment calendar.

Loads rules, obligations and Stripe history, projects the rules over the
look-around window of the viewed date and reconciles everything against
"today". Nothing computed here is persisted.
"""
import logging
from collections import Counter
from datetime import date
from typing import List, Optional, Tuple

from app.db.mongo import get_database
from app.models.calendar import Reconciliation
from app.models.obligation import Obligation
from app.models.payment_rule import PaymentRule
from app.repositories.obligation_repo import ObligationRepository
from app.repositories.payment_history_repo import PaymentHistoryRepository
from app.repositories.payment_rule_repo import PaymentRuleRepository
from app.schemas.calendar import CalendarDayResponse, CalendarMonthResponse, RuleCounts
from app.schemas.obligation import ObligationResponse
from app.services.projection import project_all, projection_window
from app.services.reconciliation import build_entries, reconcile, summarize
from app.utils.dates import month_bounds

logger = logging.getLogger(__name__)


def count_rules(rules: List[PaymentRule]) -> RuleCounts:
    active = [rule for rule in rules if rule.is_active]
    return RuleCounts(
        active=len(active),
        cancelled=len(rules) - len(active),
        active_by_frequency=dict(Counter(rule.frequency.value for rule in active)),
    )


async def _load(anchor: date, today: date) -> Tuple[List[PaymentRule], List[Obligation], Reconciliation]:
    db = await get_database()
    window_start, window_end = projection_window(anchor)

    rules = await PaymentRuleRepository(db).list_rules()
    obligations = await ObligationRepository(db).list_obligations()
    history = await PaymentHistoryRepository(db).list_payments(window_start, window_end)

    occurrences = project_all(rules, window_start, window_end, today)
    entries = build_entries(occurrences, history, obligations)
    logger.debug(
        "Reconciling %d entries (%d rules, %d obligations, %d history) for %s",
        len(entries), len(rules), len(obligations), len(history), anchor
    )
    return rules, obligations, reconcile(entries, obligations, today)


class CalendarService:
    @staticmethod
    async def month_view(year: int, month: int, today: Optional[date] = None) -> CalendarMonthResponse:
        if today is None:
            today = date.today()
        first_day, last_day = month_bounds(year, month)
        window_start, window_end = projection_window(first_day)

        rules, obligations, result = await _load(first_day, today)
        in_month = [e for e in result.entries if first_day <= e.payment_date <= last_day]
        outstanding = sorted(
            (o for o in obligations if o.is_unresolved()),
            key=lambda o: o.due_date or date.max
        )

        return CalendarMonthResponse(
            year=year,
            month=month,
            today=today,
            window_start=window_start,
            window_end=window_end,
            entries=in_month,
            summary=summarize(in_month, obligations),
            outstanding_obligations=[
                ObligationResponse.model_validate(o.model_dump(by_alias=True)) for o in outstanding
            ],
            rule_counts=count_rules(rules),
        )

    @staticmethod
    async def day_view(day: date, today: Optional[date] = None) -> CalendarDayResponse:
        if today is None:
            today = date.today()
        _, _, result = await _load(day, today)
        return CalendarDayResponse(
            day=day,
            today=today,
            entries=[e for e in result.entries if e.payment_date == day],
        )
