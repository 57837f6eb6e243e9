"""
Calendar value types. Derived on every query, never persisted.
"""

from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.obligation import PaymentOrigin
from app.models.payment_rule import Frequency


class Occurrence(BaseModel):
    """One concrete date generated from a payment rule."""
    rule_id: Optional[str]
    occurs_on: date
    is_past: bool

    model_config = ConfigDict(frozen=True)


class EntryKind(str, Enum):
    CUSTOM = "custom"
    STRIPE_PAID = "stripe_paid"
    STRIPE_UPCOMING = "stripe_upcoming"
    STRIPE_OBLIGATION = "stripe_obligation"


class DisplayStatus(str, Enum):
    PAID = "paid"
    UPCOMING = "upcoming"
    OUTSTANDING = "outstanding"
    FAILED = "failed"
    WRITTEN_OFF = "written_off"


class ClassificationBasis(str, Enum):
    OBLIGATION = "obligation"   # decided by an obligation record
    DATE = "date"               # decided by the date alone
    REPORTED = "reported"       # today's entry, decided by the reported status


class CalendarEntry(BaseModel):
    """A payment shown on the calendar, before classification."""
    id: str
    kind: EntryKind
    origin: PaymentOrigin
    rule_id: Optional[str] = None
    obligation_id: Optional[str] = None
    client_name: str
    email: Optional[str] = None
    amount_cents: int
    currency: str = "eur"
    payment_date: date
    reported_status: str
    frequency: Optional[Frequency] = None
    is_active: bool = True
    description: Optional[str] = None
    invoice_url: Optional[str] = None


class ClassifiedEntry(CalendarEntry):
    status: DisplayStatus
    basis: ClassificationBasis


class Bucket(BaseModel):
    count: int = 0
    total_cents: int = 0

    def add(self, amount_cents: int) -> None:
        self.count += 1
        self.total_cents += amount_cents


class LedgerSummary(BaseModel):
    paid: Bucket = Field(default_factory=Bucket)
    upcoming: Bucket = Field(default_factory=Bucket)
    failed: Bucket = Field(default_factory=Bucket)
    written_off: Bucket = Field(default_factory=Bucket)
    outstanding: Bucket = Field(default_factory=Bucket)
    # Taken from the obligation list itself, so debts without a calendar entry still count
    outstanding_debt: Bucket = Field(default_factory=Bucket)


class Reconciliation(BaseModel):
    entries: List[ClassifiedEntry]
    summary: LedgerSummary
