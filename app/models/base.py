from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from bson import ObjectId
from pydantic import BaseModel, Field, ConfigDict


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_object_id(value: Any) -> Optional[ObjectId]:
    """Return an ObjectId for ``value`` or None when it is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def _to_bson(value: Any) -> Any:
    # BSON has no plain date type; calendar dates are stored as YYYY-MM-DD strings
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, list):
        return [_to_bson(v) for v in value]
    if isinstance(value, dict):
        return {k: _to_bson(v) for k, v in value.items()}
    return value


class MongoModel(BaseModel):
    id: Optional[str] = Field(default=None, validation_alias="_id", serialization_alias="_id")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        from_attributes=True
    )

    @classmethod
    def from_document(cls, doc: Dict[str, Any]):
        """Build a model from a raw MongoDB document."""
        doc = dict(doc)
        if "_id" in doc:
            doc["_id"] = str(doc["_id"])
        return cls(**doc)

    def to_document(self) -> Dict[str, Any]:
        """Dump to a MongoDB document (without ``_id``)."""
        doc = self.model_dump(by_alias=True, exclude={"id"})
        return _to_bson(doc)
