from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.core.config import settings
from app.models.payment_rule import Frequency, PaymentType
from app.utils.dates import parse_calendar_date, to_date_key


class PaymentRuleCreate(BaseModel):
    """Register a recurring payment tracked outside Stripe."""
    client_name: str = Field(..., min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    amount_cents: int = Field(..., gt=0)  # Integer cents
    currency: str = Field(default_factory=lambda: settings.DEFAULT_CURRENCY, min_length=3, max_length=3)
    frequency: Frequency = Frequency.MONTHLY
    start_date: date
    payment_type: PaymentType = PaymentType.CASH
    description: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("start_date", mode="before")
    @classmethod
    def _calendar_date(cls, value):
        parsed = parse_calendar_date(value)
        if parsed is None:
            raise ValueError("start_date must be a YYYY-MM-DD date")
        return parsed

    @field_validator("currency")
    @classmethod
    def _lower_currency(cls, value: str) -> str:
        return value.lower()


class ExcludeDateRequest(BaseModel):
    """Remove a single occurrence. Accepts plain dates and ISO timestamps."""
    date: str

    @field_validator("date")
    @classmethod
    def _date_key(cls, value: str) -> str:
        key = to_date_key(value)
        if key is None:
            raise ValueError("date must be a YYYY-MM-DD date")
        return key


class PaymentRuleResponse(BaseModel):
    id: str = Field(validation_alias="_id", serialization_alias="id")
    client_name: str
    email: Optional[str] = None
    amount_cents: int
    currency: str
    frequency: Frequency
    start_date: Optional[date]
    payment_type: PaymentType
    description: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool
    excluded_dates: List[str]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "populate_by_name": True}
