import pytest
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from bson import ObjectId
from fastapi.testclient import TestClient

from app.core.auth import get_current_operator
from app.main import app
from app.models.obligation import Obligation, ObligationStatus, PaymentOrigin
from app.models.payment_rule import Frequency, PaymentRule
from app.schemas.auth import Operator

COLLECTIONS = ("payment_rules", "payment_obligations", "payment_settlements", "stripe_payments")
ASYNC_METHODS = (
    "find_one", "insert_one", "find_one_and_update", "update_one",
    "delete_one", "delete_many", "bulk_write", "create_index",
)


def _cursor(docs=None):
    """Motor-like cursor: ``find(...).sort(...).to_list(None)``."""
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.to_list = AsyncMock(return_value=list(docs or []))
    return cursor


@pytest.fixture
def make_cursor():
    return _cursor


@pytest.fixture
def mock_db():
    """Mocked motor database; every collection starts empty."""
    db = MagicMock()
    for name in COLLECTIONS:
        collection = getattr(db, name)
        for method in ASYNC_METHODS:
            setattr(collection, method, AsyncMock(return_value=None))
        collection.find.return_value = _cursor()
        collection.aggregate.return_value = _cursor()

    # transaction(): async with await client.start_session() as s, s.start_transaction()
    session = MagicMock()
    session.__aenter__.return_value = session
    db.client.start_session = AsyncMock(return_value=session)
    db.session = session
    return db


@pytest.fixture
def client():
    """Test client authenticated as the operator. Lifespan (MongoDB) is not started."""
    app.dependency_overrides[get_current_operator] = lambda: Operator(email="admin@example.com")
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def monthly_rule():
    return PaymentRule(
        id=str(ObjectId()),
        client_name="Acme GmbH",
        email="billing@acme.example",
        amount_cents=5000,
        frequency=Frequency.MONTHLY,
        start_date=date(2024, 1, 15),
    )


def make_obligation(**overrides) -> Obligation:
    values = dict(
        id=str(ObjectId()),
        client_name="Acme GmbH",
        amount_due_cents=5000,
        due_date=date(2024, 2, 15),
        status=ObligationStatus.PENDING,
        origin=PaymentOrigin.CUSTOM,
        created_at=datetime(2024, 2, 16, tzinfo=timezone.utc),
        updated_at=datetime(2024, 2, 16, tzinfo=timezone.utc),
    )
    values.update(overrides)
    return Obligation(**values)


@pytest.fixture
def obligation_factory():
    return make_obligation
