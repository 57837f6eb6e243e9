import logging
from typing import List, Optional

from app.db.mongo import get_database
from app.models.payment_history import StripePayment
from app.repositories.payment_history_repo import PaymentHistoryRepository
from app.schemas.payment_history import StripePaymentIn
from app.utils.dates import month_bounds

logger = logging.getLogger(__name__)


class PaymentHistoryService:
    @staticmethod
    async def list_payments(year: Optional[int] = None, month: Optional[int] = None) -> List[StripePayment]:
        """Stripe history, for one month when ``year`` and ``month`` are given."""
        db = await get_database()
        start = end = None
        if year and month:
            start, end = month_bounds(year, month)
        return await PaymentHistoryRepository(db).list_payments(start, end)

    @staticmethod
    async def upsert(payments_in: List[StripePaymentIn]) -> int:
        db = await get_database()
        payments = [StripePayment(**p.model_dump()) for p in payments_in]
        written = await PaymentHistoryRepository(db).upsert_payments(payments)
        logger.info("Stored %d Stripe payment history entries", written)
        return written
