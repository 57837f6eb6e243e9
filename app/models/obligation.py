"""
Obligation model - a tracked debt for a single payment that did not arrive.

Design principles:
- At most one obligation per (custom_payment_id, due_date)
- Raised when a payment is marked unpaid or a Stripe charge fails
- Status: pending / grace / retrying / delinquent / failed (unresolved)
          settled / written_off (terminal)
- Unsettle reopens a settled obligation; no new record is created
- All amounts in integer cents
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import field_validator

from app.models.base import MongoModel
from app.utils.dates import parse_calendar_date


class ObligationStatus(str, Enum):
    PENDING = "pending"
    GRACE = "grace"
    RETRYING = "retrying"
    DELINQUENT = "delinquent"
    FAILED = "failed"
    SETTLED = "settled"
    WRITTEN_OFF = "written_off"


class PaymentOrigin(str, Enum):
    STRIPE = "stripe"
    CUSTOM = "custom"


UNRESOLVED_STATUSES = frozenset({
    ObligationStatus.PENDING,
    ObligationStatus.GRACE,
    ObligationStatus.RETRYING,
    ObligationStatus.DELINQUENT,
    ObligationStatus.FAILED,
})

# Stripe charges in these states are shown as failed on the calendar
FAILED_STATUSES = frozenset({
    ObligationStatus.RETRYING,
    ObligationStatus.DELINQUENT,
    ObligationStatus.FAILED,
})


class Obligation(MongoModel):
    """
    Debt record: client_name owes amount_due_cents, due on due_date.

    Invariants:
    - amount_due_cents > 0
    - custom_payment_id is set for origin=custom
    """
    custom_payment_id: Optional[str] = None
    stripe_invoice_id: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None

    client_name: str
    amount_due_cents: int
    currency: str = "eur"
    due_date: Optional[date] = None

    status: ObligationStatus = ObligationStatus.PENDING
    origin: PaymentOrigin = PaymentOrigin.CUSTOM

    # Retry metadata (Stripe dunning)
    grace_days: int = 7
    next_retry_date: Optional[datetime] = None
    attempt_count: int = 0
    last_failure_reason: Optional[str] = None

    notes: Optional[str] = None

    @field_validator("due_date", mode="before")
    @classmethod
    def _read_due_date(cls, value):
        return parse_calendar_date(value)

    def is_unresolved(self) -> bool:
        return self.status in UNRESOLVED_STATUSES
