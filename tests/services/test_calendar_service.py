import pytest
from datetime import date, datetime, timezone
from unittest.mock import MagicMock, patch
from bson import ObjectId

from app.models.calendar import DisplayStatus
from app.schemas.payment_history import StripePaymentIn
from app.services.calendar_service import CalendarService
from app.services.payment_history_service import PaymentHistoryService

NOW = datetime(2024, 3, 1, tzinfo=timezone.utc)
RULE_ID = ObjectId()


def _rule_doc(**overrides) -> dict:
    doc = {
        "_id": RULE_ID,
        "client_name": "Acme GmbH",
        "amount_cents": 10000,
        "frequency": "monthly",
        "start_date": "2024-01-15",
        "is_active": True,
        "excluded_dates": ["2024-03-15"],
        "created_at": NOW,
        "updated_at": NOW,
    }
    doc.update(overrides)
    return doc


def _obligation_doc(due_date: str, status: str, **overrides) -> dict:
    doc = {
        "_id": ObjectId(),
        "custom_payment_id": str(RULE_ID),
        "client_name": "Acme GmbH",
        "amount_due_cents": 10000,
        "due_date": due_date,
        "status": status,
        "origin": "custom",
        "created_at": NOW,
        "updated_at": NOW,
    }
    doc.update(overrides)
    return doc


@pytest.fixture
def calendar_db(mock_db, make_cursor):
    mock_db.payment_rules.find.return_value = make_cursor([
        _rule_doc(),
        _rule_doc(_id=ObjectId(), client_name="Old Client", frequency="yearly", start_date="2023-06-01", is_active=False),
    ])
    mock_db.payment_obligations.find.return_value = make_cursor([
        _obligation_doc("2024-02-15", "settled"),
        _obligation_doc("2024-01-15", "pending", amount_due_cents=4000),
    ])
    mock_db.stripe_payments.find.return_value = make_cursor([
        {"_id": "in_1", "client_name": "Stripe Client", "amount_cents": 2500,
         "payment_date": "2024-02-01", "status": "paid", "created_at": NOW, "updated_at": NOW},
    ])
    return mock_db


@pytest.mark.asyncio
async def test_month_view(calendar_db):
    with patch("app.services.calendar_service.get_database", return_value=calendar_db):
        view = await CalendarService.month_view(2024, 2, today=date(2024, 3, 1))

    assert (view.window_start, view.window_end) == (date(2022, 1, 1), date(2026, 12, 31))
    assert [(e.payment_date, e.status) for e in view.entries] == [
        (date(2024, 2, 1), DisplayStatus.PAID),
        (date(2024, 2, 15), DisplayStatus.PAID),
    ]
    assert view.summary.paid.total_cents == 12500
    # The January debt is outside the month but still owed
    assert view.summary.outstanding_debt.total_cents == 4000
    assert [o.due_date for o in view.outstanding_obligations] == [date(2024, 1, 15)]
    assert view.rule_counts.active == 1
    assert view.rule_counts.cancelled == 1
    assert view.rule_counts.active_by_frequency == {"monthly": 1}

    history_query = calendar_db.stripe_payments.find.call_args[0][0]
    assert history_query["payment_date"] == {"$gte": "2022-01-01", "$lte": "2026-12-31"}


@pytest.mark.asyncio
async def test_month_view_skips_excluded_occurrence(calendar_db):
    with patch("app.services.calendar_service.get_database", return_value=calendar_db):
        view = await CalendarService.month_view(2024, 3, today=date(2024, 3, 1))

    assert view.entries == []


@pytest.mark.asyncio
async def test_day_view(calendar_db):
    with patch("app.services.calendar_service.get_database", return_value=calendar_db):
        view = await CalendarService.day_view(date(2024, 1, 15), today=date(2024, 3, 1))

    assert len(view.entries) == 1
    assert view.entries[0].status == DisplayStatus.OUTSTANDING
    assert view.entries[0].id == f"{RULE_ID}-2024-01-15"


@pytest.mark.asyncio
async def test_history_upsert(mock_db):
    mock_db.stripe_payments.bulk_write.return_value = MagicMock(upserted_count=1, modified_count=1)
    payments = [
        StripePaymentIn(id="in_1", client_name="A", amount_cents=100, payment_date="2024-02-01"),
        StripePaymentIn(id="in_2", client_name="B", amount_cents=200, payment_date="2024-02-02", status="processing"),
    ]

    with patch("app.services.payment_history_service.get_database", return_value=mock_db):
        written = await PaymentHistoryService.upsert(payments)

    assert written == 2
    operations = mock_db.stripe_payments.bulk_write.call_args[0][0]
    assert [op._filter for op in operations] == [{"_id": "in_1"}, {"_id": "in_2"}]


@pytest.mark.asyncio
async def test_history_for_one_month(mock_db):
    with patch("app.services.payment_history_service.get_database", return_value=mock_db):
        await PaymentHistoryService.list_payments(2024, 2)

    query = mock_db.stripe_payments.find.call_args[0][0]
    assert query == {"payment_date": {"$gte": "2024-02-01", "$lte": "2024-02-29"}}
