"""
ObligationRepository - debt records and the settlements recorded against them.

Status changes go through ``transition``: a single find-and-update filtered
on the allowed source statuses, so two operators settling the same debt at
once cannot both succeed.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.models.base import parse_object_id
from app.models.obligation import Obligation, ObligationStatus, UNRESOLVED_STATUSES
from app.models.settlement import Settlement
from app.utils.errors import ConflictError

logger = logging.getLogger(__name__)


def _status_values(statuses: Iterable[ObligationStatus]) -> List[str]:
    return sorted(status.value for status in statuses)


class ObligationRepository:
    """Repository for payment obligations (debts) and settlements."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db.payment_obligations
        self.settlements = db.payment_settlements

    def _to_models(self, docs: List[Dict[str, Any]]) -> List[Obligation]:
        obligations = []
        for doc in docs:
            try:
                obligations.append(Obligation.from_document(doc))
            except ValidationError as exc:
                logger.warning("Skipping malformed obligation %s: %s", doc.get("_id"), exc)
        return obligations

    async def list_obligations(
        self, statuses: Optional[Iterable[ObligationStatus]] = None
    ) -> List[Obligation]:
        """All obligations (optionally filtered by status), latest due date first."""
        query: Dict[str, Any] = {}
        if statuses is not None:
            query["status"] = {"$in": _status_values(statuses)}
        docs = await self.collection.find(query).sort("due_date", -1).to_list(None)
        return self._to_models(docs)

    async def list_outstanding(self) -> List[Obligation]:
        """Unresolved obligations, oldest due date first."""
        docs = await self.collection.find(
            {"status": {"$in": _status_values(UNRESOLVED_STATUSES)}}
        ).sort("due_date", 1).to_list(None)
        return self._to_models(docs)

    async def list_by_rule(self, rule_id: str) -> List[Obligation]:
        docs = await self.collection.find({"custom_payment_id": rule_id}).sort("due_date", -1).to_list(None)
        return self._to_models(docs)

    async def get(self, obligation_id: str) -> Optional[Obligation]:
        oid = parse_object_id(obligation_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        return Obligation.from_document(doc) if doc else None

    async def find_for_occurrence(self, rule_id: str, due_date: date) -> Optional[Obligation]:
        """Any obligation (whatever its status) already raised for this rule occurrence."""
        doc = await self.collection.find_one({
            "custom_payment_id": rule_id,
            "due_date": due_date.isoformat()
        })
        return Obligation.from_document(doc) if doc else None

    async def insert(self, obligation: Obligation) -> Obligation:
        now = datetime.now(timezone.utc)
        obligation.created_at = now
        obligation.updated_at = now
        try:
            result = await self.collection.insert_one(obligation.to_document())
        except DuplicateKeyError:
            raise ConflictError(
                f"An obligation already exists for payment {obligation.custom_payment_id} "
                f"on {obligation.due_date}"
            )
        obligation.id = str(result.inserted_id)
        return obligation

    async def transition(
        self,
        obligation_id: str,
        from_statuses: Iterable[ObligationStatus],
        to_status: ObligationStatus,
        extra: Optional[Dict[str, Any]] = None,
        session=None,
    ) -> Optional[Obligation]:
        """
        Move an obligation to ``to_status`` if its current status is in ``from_statuses``.

        Returns the updated obligation, or None when it does not exist or its
        status no longer allows the change.
        """
        oid = parse_object_id(obligation_id)
        if oid is None:
            return None
        update = {"status": to_status.value, "updated_at": datetime.now(timezone.utc)}
        update.update(extra or {})
        doc = await self.collection.find_one_and_update(
            {"_id": oid, "status": {"$in": _status_values(from_statuses)}},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
            session=session
        )
        return Obligation.from_document(doc) if doc else None

    async def delete_by_rule(self, rule_id: str, session=None) -> List[str]:
        """Delete every obligation of a rule and return their ids."""
        docs = await self.collection.find(
            {"custom_payment_id": rule_id}, {"_id": 1}, session=session
        ).to_list(None)
        ids = [doc["_id"] for doc in docs]
        if ids:
            await self.collection.delete_many({"_id": {"$in": ids}}, session=session)
        return [str(oid) for oid in ids]

    # Settlements

    async def insert_settlement(self, settlement: Settlement, session=None) -> Settlement:
        result = await self.settlements.insert_one(settlement.to_document(), session=session)
        settlement.id = str(result.inserted_id)
        return settlement

    async def list_settlements(self, obligation_id: str) -> List[Settlement]:
        docs = await self.settlements.find({"obligation_id": obligation_id}).sort("paid_at", -1).to_list(None)
        return [Settlement.from_document(doc) for doc in docs]

    async def delete_settlements(self, obligation_ids: List[str], session=None) -> int:
        if not obligation_ids:
            return 0
        result = await self.settlements.delete_many(
            {"obligation_id": {"$in": obligation_ids}}, session=session
        )
        return result.deleted_count
