from datetime import datetime, timezone
from typing import Optional

from pydantic import Field

from app.models.base import MongoModel


class Settlement(MongoModel):
    """A payment recorded against an obligation when it is settled."""
    obligation_id: str
    amount_paid_cents: int
    currency: str = "eur"
    paid_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None
