"""
PaymentRuleRepository - storage for recurring payment rules.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo import ReturnDocument

from app.models.base import parse_object_id
from app.models.payment_rule import PaymentRule

logger = logging.getLogger(__name__)


class PaymentRuleRepository:
    """Repository for payment rules (custom payments)."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db.payment_rules

    async def list_rules(self) -> List[PaymentRule]:
        """All rules, oldest start date first. Unreadable documents are skipped."""
        docs = await self.collection.find({}).sort("start_date", 1).to_list(None)
        rules = []
        for doc in docs:
            try:
                rules.append(PaymentRule.from_document(doc))
            except ValidationError as exc:
                logger.warning("Skipping malformed payment rule %s: %s", doc.get("_id"), exc)
        return rules

    async def get_rule(self, rule_id: str) -> Optional[PaymentRule]:
        oid = parse_object_id(rule_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        return PaymentRule.from_document(doc) if doc else None

    async def insert_rule(self, rule: PaymentRule) -> PaymentRule:
        now = datetime.now(timezone.utc)
        rule.created_at = now
        rule.updated_at = now
        result = await self.collection.insert_one(rule.to_document())
        rule.id = str(result.inserted_id)
        return rule

    async def _update(self, rule_id: str, update: dict) -> Optional[PaymentRule]:
        oid = parse_object_id(rule_id)
        if oid is None:
            return None
        update.setdefault("$set", {})["updated_at"] = datetime.now(timezone.utc)
        doc = await self.collection.find_one_and_update(
            {"_id": oid},
            update,
            return_document=ReturnDocument.AFTER
        )
        return PaymentRule.from_document(doc) if doc else None

    async def deactivate(self, rule_id: str) -> Optional[PaymentRule]:
        """Stop generating new occurrences; history stays."""
        return await self._update(rule_id, {"$set": {"is_active": False}})

    async def add_excluded_date(self, rule_id: str, date_key: str) -> Optional[PaymentRule]:
        """Skip one occurrence. Adding the same date twice is a no-op."""
        return await self._update(rule_id, {"$addToSet": {"excluded_dates": date_key}})

    async def delete_rule(self, rule_id: str, session=None) -> bool:
        oid = parse_object_id(rule_id)
        if oid is None:
            return False
        result = await self.collection.delete_one({"_id": oid}, session=session)
        return result.deleted_count > 0
