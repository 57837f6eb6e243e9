"""
Obligation reconciliation.

Core algorithm:
1. Unify projected rule occurrences, Stripe history and unresolved Stripe
   obligations into calendar entries
2. Index obligations by (rule id, due date key) and by Stripe invoice id
3. Classify each entry against "today" (first match wins):
   failed Stripe charge > unresolved obligation > settled obligation >
   written-off obligation > date before today > today and reported "paid" >
   upcoming
4. Sum the buckets; outstanding debt is summed from the obligation list so
   debts without a calendar entry are never dropped

Classification is date based rather than status based: an entry dated today
whose payment is still "processing" stays upcoming instead of briefly
vanishing from the paid bucket. Pure: the same inputs always give the same
result.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from app.models.calendar import (
    Bucket,
    CalendarEntry,
    ClassificationBasis,
    ClassifiedEntry,
    DisplayStatus,
    EntryKind,
    LedgerSummary,
    Occurrence,
    Reconciliation,
)
from app.models.obligation import (
    FAILED_STATUSES,
    Obligation,
    ObligationStatus,
    PaymentOrigin,
    UNRESOLVED_STATUSES,
)
from app.models.payment_history import StripePayment
from app.models.payment_rule import PaymentRule
from app.utils.dates import to_date_key


class ObligationIndex:
    """Lookup of obligations by the calendar entry they belong to."""

    def __init__(self, obligations: Iterable[Obligation]):
        self.by_rule_date: Dict[Tuple[str, str], List[Obligation]] = defaultdict(list)
        self.by_invoice: Dict[str, List[Obligation]] = defaultdict(list)
        self.by_id: Dict[str, Obligation] = {}
        for obligation in obligations:
            if obligation.id:
                self.by_id[obligation.id] = obligation
            if obligation.stripe_invoice_id:
                self.by_invoice[obligation.stripe_invoice_id].append(obligation)
            key = to_date_key(obligation.due_date)
            if obligation.custom_payment_id and key:
                self.by_rule_date[(obligation.custom_payment_id, key)].append(obligation)

    def for_entry(self, entry: CalendarEntry) -> List[Obligation]:
        if entry.kind == EntryKind.STRIPE_OBLIGATION:
            obligation = self.by_id.get(entry.obligation_id or "")
            return [obligation] if obligation else []
        if entry.origin == PaymentOrigin.STRIPE:
            return list(self.by_invoice.get(entry.id, []))
        if entry.rule_id is None:
            return []
        return list(self.by_rule_date.get((entry.rule_id, entry.payment_date.isoformat()), []))


def _first_with_status(obligations: Sequence[Obligation], statuses) -> Optional[Obligation]:
    for obligation in obligations:
        if obligation.status in statuses:
            return obligation
    return None


def build_entries(
    occurrences: Iterable[Tuple[PaymentRule, Occurrence]],
    stripe_payments: Iterable[StripePayment],
    obligations: Iterable[Obligation],
) -> List[CalendarEntry]:
    """Unify rule occurrences, Stripe history and failed Stripe charges, ordered by date."""
    entries: List[CalendarEntry] = []

    for rule, occurrence in occurrences:
        entries.append(CalendarEntry(
            id=f"{rule.id}-{occurrence.occurs_on.isoformat()}",
            kind=EntryKind.CUSTOM,
            origin=PaymentOrigin.CUSTOM,
            rule_id=rule.id,
            client_name=rule.client_name,
            email=rule.email,
            amount_cents=rule.amount_cents,
            currency=rule.currency,
            payment_date=occurrence.occurs_on,
            reported_status="paid" if occurrence.is_past else "upcoming",
            frequency=rule.frequency,
            is_active=rule.is_active,
            description=rule.description,
        ))

    invoice_ids = set()
    for payment in stripe_payments:
        if payment.payment_date is None:
            continue
        invoice_ids.add(payment.id)
        entries.append(CalendarEntry(
            id=payment.id or "",
            kind=EntryKind.STRIPE_PAID if payment.status == "paid" else EntryKind.STRIPE_UPCOMING,
            origin=PaymentOrigin.STRIPE,
            client_name=payment.client_name,
            email=payment.email,
            amount_cents=payment.amount_cents,
            currency=payment.currency,
            payment_date=payment.payment_date,
            reported_status=payment.status,
            invoice_url=payment.invoice_url,
        ))

    # Failed Stripe charges stay visible even when the history no longer lists them
    for obligation in obligations:
        if (
            obligation.origin != PaymentOrigin.STRIPE
            or not obligation.is_unresolved()
            or obligation.due_date is None
            or (obligation.stripe_invoice_id and obligation.stripe_invoice_id in invoice_ids)
        ):
            continue
        entries.append(CalendarEntry(
            id=f"obligation_{obligation.id}",
            kind=EntryKind.STRIPE_OBLIGATION,
            origin=PaymentOrigin.STRIPE,
            obligation_id=obligation.id,
            client_name=obligation.client_name,
            amount_cents=obligation.amount_due_cents,
            currency=obligation.currency,
            payment_date=obligation.due_date,
            reported_status=obligation.status.value,
            description=obligation.notes,
        ))

    entries.sort(key=lambda entry: entry.payment_date)
    return entries


def classify(entry: CalendarEntry, index: ObligationIndex, today: date) -> ClassifiedEntry:
    """Classify a single calendar entry. First matching rule wins."""
    matched = index.for_entry(entry)
    status: DisplayStatus
    basis = ClassificationBasis.OBLIGATION
    obligation_id = entry.obligation_id

    failed = _first_with_status(matched, FAILED_STATUSES) if entry.origin == PaymentOrigin.STRIPE else None
    unresolved = _first_with_status(matched, UNRESOLVED_STATUSES)
    settled = _first_with_status(matched, {ObligationStatus.SETTLED})
    written_off = _first_with_status(matched, {ObligationStatus.WRITTEN_OFF})

    if failed:
        status, obligation_id = DisplayStatus.FAILED, failed.id
    elif unresolved:
        status, obligation_id = DisplayStatus.OUTSTANDING, unresolved.id
    elif settled:
        status, obligation_id = DisplayStatus.PAID, settled.id
    elif written_off:
        status, obligation_id = DisplayStatus.WRITTEN_OFF, written_off.id
    elif entry.payment_date < today:
        status, basis = DisplayStatus.PAID, ClassificationBasis.DATE
    elif entry.payment_date == today and entry.reported_status == "paid":
        status, basis = DisplayStatus.PAID, ClassificationBasis.REPORTED
    else:
        status, basis = DisplayStatus.UPCOMING, ClassificationBasis.DATE

    return ClassifiedEntry(
        **entry.model_dump(exclude={"obligation_id"}),
        obligation_id=obligation_id,
        status=status,
        basis=basis,
    )


def summarize(entries: Iterable[ClassifiedEntry], obligations: Iterable[Obligation]) -> LedgerSummary:
    """Bucket totals for the given entries plus the outstanding debt from ``obligations``."""
    summary = LedgerSummary()
    buckets: Dict[DisplayStatus, Bucket] = {
        DisplayStatus.PAID: summary.paid,
        DisplayStatus.UPCOMING: summary.upcoming,
        DisplayStatus.FAILED: summary.failed,
        DisplayStatus.WRITTEN_OFF: summary.written_off,
        DisplayStatus.OUTSTANDING: summary.outstanding,
    }
    for entry in entries:
        buckets[entry.status].add(entry.amount_cents)

    for obligation in obligations:
        if obligation.status in UNRESOLVED_STATUSES:
            summary.outstanding_debt.add(obligation.amount_due_cents)

    return summary


def reconcile(
    entries: Sequence[CalendarEntry],
    obligations: Sequence[Obligation],
    today: Optional[date] = None,
) -> Reconciliation:
    """Classify every entry and compute the aggregate ledger."""
    if today is None:
        today = date.today()
    index = ObligationIndex(obligations)
    classified = [classify(entry, index, today) for entry in entries]
    return Reconciliation(entries=classified, summary=summarize(classified, obligations))
