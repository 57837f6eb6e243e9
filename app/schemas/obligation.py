from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.core.config import settings
from app.models.obligation import ObligationStatus, PaymentOrigin, UNRESOLVED_STATUSES
from app.utils.dates import parse_calendar_date


class ObligationCreate(BaseModel):
    """
    Raise a debt. Used by "mark as unpaid" on a rule occurrence
    (origin=custom) and by the Stripe dunning collaborator (origin=stripe).
    """
    custom_payment_id: Optional[str] = None
    stripe_invoice_id: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None
    client_name: str = Field(..., min_length=1)
    amount_due_cents: int = Field(..., gt=0)
    currency: str = Field(default_factory=lambda: settings.DEFAULT_CURRENCY)
    due_date: date
    origin: PaymentOrigin = PaymentOrigin.CUSTOM
    status: ObligationStatus = ObligationStatus.PENDING
    grace_days: int = Field(default_factory=lambda: settings.DEFAULT_GRACE_DAYS, ge=0)
    next_retry_date: Optional[datetime] = None
    attempt_count: int = Field(default=0, ge=0)
    last_failure_reason: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("due_date", mode="before")
    @classmethod
    def _calendar_date(cls, value):
        parsed = parse_calendar_date(value)
        if parsed is None:
            raise ValueError("due_date must be a YYYY-MM-DD date")
        return parsed

    @model_validator(mode="after")
    def _check_origin(self):
        if self.origin == PaymentOrigin.CUSTOM and not self.custom_payment_id:
            raise ValueError("custom_payment_id is required for custom obligations")
        if self.status not in UNRESOLVED_STATUSES:
            raise ValueError("a new obligation must start unresolved")
        return self


class SettleRequest(BaseModel):
    """Record a payment and close the debt."""
    amount_paid_cents: int = Field(..., gt=0)
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None
    paid_at: Optional[datetime] = None


class WriteOffRequest(BaseModel):
    """Forgive the debt. A note is mandatory."""
    notes: str = Field(..., min_length=1)


class ObligationResponse(BaseModel):
    id: str = Field(validation_alias="_id", serialization_alias="id")
    custom_payment_id: Optional[str] = None
    stripe_invoice_id: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None
    client_name: str
    amount_due_cents: int
    currency: str
    due_date: Optional[date]
    status: ObligationStatus
    origin: PaymentOrigin
    grace_days: int
    next_retry_date: Optional[datetime] = None
    attempt_count: int
    last_failure_reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "populate_by_name": True}


class SettlementResponse(BaseModel):
    id: str = Field(validation_alias="_id", serialization_alias="id")
    obligation_id: str
    amount_paid_cents: int
    currency: str
    paid_at: datetime
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None

    model_config = {"from_attributes": True, "populate_by_name": True}
