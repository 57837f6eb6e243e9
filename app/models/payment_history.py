from datetime import date
from enum import Enum
from typing import Optional

from pydantic import field_validator

from app.models.base import MongoModel
from app.utils.dates import parse_calendar_date


class StripePaymentKind(str, Enum):
    INVOICE = "stripe_invoice"
    UPCOMING = "stripe_upcoming"


class StripePayment(MongoModel):
    """
    Stripe-sourced payment history entry.

    ``id`` is the Stripe invoice id. ``status`` is whatever Stripe reported
    ("paid", "upcoming", or a transient state such as "processing").
    """
    kind: StripePaymentKind = StripePaymentKind.INVOICE
    client_name: str
    email: Optional[str] = None
    amount_cents: int
    currency: str = "eur"
    payment_date: Optional[date] = None
    status: str = "paid"
    tier: Optional[str] = None
    invoice_url: Optional[str] = None

    @field_validator("payment_date", mode="before")
    @classmethod
    def _read_payment_date(cls, value):
        return parse_calendar_date(value)
