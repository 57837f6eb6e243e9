from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.models.payment_history import StripePaymentKind
from app.utils.dates import parse_calendar_date


class StripePaymentIn(BaseModel):
    """One invoice as reported by the Stripe sync job."""
    id: str = Field(..., min_length=1)  # Stripe invoice id
    kind: StripePaymentKind = StripePaymentKind.INVOICE
    client_name: str
    email: Optional[str] = None
    amount_cents: int
    currency: str = "eur"
    payment_date: date
    status: str = "paid"
    tier: Optional[str] = None
    invoice_url: Optional[str] = None

    @field_validator("payment_date", mode="before")
    @classmethod
    def _calendar_date(cls, value):
        parsed = parse_calendar_date(value)
        if parsed is None:
            raise ValueError("payment_date must be a YYYY-MM-DD date")
        return parsed


class PaymentHistoryUpsert(BaseModel):
    payments: List[StripePaymentIn]


class PaymentHistoryUpsertResponse(BaseModel):
    written: int


class StripePaymentResponse(BaseModel):
    id: str = Field(validation_alias="_id", serialization_alias="id")
    kind: StripePaymentKind
    client_name: str
    email: Optional[str] = None
    amount_cents: int
    currency: str
    payment_date: Optional[date]
    status: str
    tier: Optional[str] = None
    invoice_url: Optional[str] = None

    model_config = {"from_attributes": True, "populate_by_name": True}
