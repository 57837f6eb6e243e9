"""
PaymentHistoryRepository - Stripe invoice history pushed by the sync job.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo import UpdateOne

from app.models.payment_history import StripePayment

logger = logging.getLogger(__name__)


class PaymentHistoryRepository:
    """Repository for Stripe payment history entries (keyed by invoice id)."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db.stripe_payments

    async def list_payments(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[StripePayment]:
        """History entries, optionally limited to ``[start, end]``, oldest first."""
        query: Dict[str, Any] = {}
        if start or end:
            query["payment_date"] = {}
            if start:
                query["payment_date"]["$gte"] = start.isoformat()
            if end:
                query["payment_date"]["$lte"] = end.isoformat()
        docs = await self.collection.find(query).sort("payment_date", 1).to_list(None)
        payments = []
        for doc in docs:
            try:
                payments.append(StripePayment.from_document(doc))
            except ValidationError as exc:
                logger.warning("Skipping malformed payment history entry %s: %s", doc.get("_id"), exc)
        return payments

    async def upsert_payments(self, payments: List[StripePayment]) -> int:
        """Insert or replace entries by invoice id. Returns the number of entries written."""
        operations = []
        for payment in payments:
            doc = payment.to_document()
            doc.pop("created_at", None)
            operations.append(UpdateOne(
                {"_id": payment.id},
                {"$set": doc, "$setOnInsert": {"created_at": payment.created_at}},
                upsert=True
            ))
        if not operations:
            return 0
        result = await self.collection.bulk_write(operations, ordered=False)
        return result.upserted_count + result.modified_count
