"""
Payment rule model - a manually tracked recurring payment ("custom payment").

A rule is read-only input to the projector. It is only changed by operator
actions: stop (is_active=False), exclude a single date, or delete.
"""

from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import Field, field_validator

from app.models.base import MongoModel
from app.utils.dates import parse_calendar_date, to_date_key


class Frequency(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class PaymentType(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CARD = "card"
    OTHER = "other"


class PaymentRule(MongoModel):
    client_name: str
    email: Optional[str] = None
    amount_cents: int           # Minor currency unit
    currency: str = "eur"
    frequency: Frequency = Frequency.MONTHLY
    start_date: Optional[date] = None  # None when the stored value is unreadable
    payment_type: PaymentType = PaymentType.CASH
    description: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool = True
    excluded_dates: List[str] = Field(default_factory=list)  # YYYY-MM-DD keys

    @field_validator("start_date", mode="before")
    @classmethod
    def _read_start_date(cls, value):
        return parse_calendar_date(value)

    @field_validator("excluded_dates", mode="before")
    @classmethod
    def _normalize_excluded_dates(cls, value):
        keys: List[str] = []
        for raw in value or []:
            key = to_date_key(raw)
            if key and key not in keys:
                keys.append(key)
        return keys
