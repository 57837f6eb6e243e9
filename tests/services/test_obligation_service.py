import pytest
from datetime import date, datetime, timezone
from unittest.mock import MagicMock, patch
from bson import ObjectId

from app.models.obligation import ObligationStatus, PaymentOrigin
from app.schemas.obligation import ObligationCreate, SettleRequest
from app.services.obligation_service import ObligationService
from app.utils.errors import ConflictError, InvalidTransitionError, NotFoundError, PaymentValidationError

NOW = datetime(2024, 3, 1, tzinfo=timezone.utc)


def _rule_doc(rule_id: ObjectId, **overrides) -> dict:
    doc = {
        "_id": rule_id,
        "client_name": "Acme GmbH",
        "amount_cents": 10000,
        "currency": "eur",
        "frequency": "monthly",
        "start_date": "2024-01-15",
        "payment_type": "cash",
        "is_active": True,
        "excluded_dates": [],
        "created_at": NOW,
        "updated_at": NOW,
    }
    doc.update(overrides)
    return doc


def _obligation_doc(obligation_id: ObjectId, status: str = "pending", **overrides) -> dict:
    doc = {
        "_id": obligation_id,
        "custom_payment_id": str(ObjectId()),
        "client_name": "Acme GmbH",
        "amount_due_cents": 10000,
        "currency": "eur",
        "due_date": "2024-02-15",
        "status": status,
        "origin": "custom",
        "created_at": NOW,
        "updated_at": NOW,
    }
    doc.update(overrides)
    return doc


@pytest.mark.asyncio
async def test_mark_unpaid_creates_pending_obligation(mock_db):
    rule_id = ObjectId()
    mock_db.payment_rules.find_one.return_value = _rule_doc(rule_id, description="Monthly retainer")
    mock_db.payment_obligations.find_one.return_value = None
    mock_db.payment_obligations.insert_one.return_value = MagicMock(inserted_id=ObjectId())

    with patch("app.services.obligation_service.get_database", return_value=mock_db):
        obligation = await ObligationService.mark_unpaid(str(rule_id), date(2024, 2, 15), today=date(2024, 3, 1))

    assert obligation.status == ObligationStatus.PENDING
    assert obligation.origin == PaymentOrigin.CUSTOM
    assert obligation.amount_due_cents == 10000
    assert obligation.notes == "Monthly retainer"
    stored = mock_db.payment_obligations.insert_one.call_args[0][0]
    assert stored["custom_payment_id"] == str(rule_id)
    assert stored["due_date"] == "2024-02-15"
    assert stored["status"] == "pending"


@pytest.mark.asyncio
async def test_mark_unpaid_twice_is_a_conflict(mock_db):
    rule_id = ObjectId()
    mock_db.payment_rules.find_one.return_value = _rule_doc(rule_id)
    mock_db.payment_obligations.find_one.return_value = _obligation_doc(
        ObjectId(), custom_payment_id=str(rule_id)
    )

    with patch("app.services.obligation_service.get_database", return_value=mock_db):
        with pytest.raises(ConflictError):
            await ObligationService.mark_unpaid(str(rule_id), date(2024, 2, 15), today=date(2024, 3, 1))

    mock_db.payment_obligations.insert_one.assert_not_called()


@pytest.mark.asyncio
async def test_mark_unpaid_rejects_dates_that_are_not_occurrences(mock_db):
    rule_id = ObjectId()
    mock_db.payment_rules.find_one.return_value = _rule_doc(rule_id, excluded_dates=["2024-03-15"])

    with patch("app.services.obligation_service.get_database", return_value=mock_db):
        with pytest.raises(PaymentValidationError):
            await ObligationService.mark_unpaid(str(rule_id), date(2024, 2, 16), today=date(2024, 3, 1))
        with pytest.raises(PaymentValidationError):
            await ObligationService.mark_unpaid(str(rule_id), date(2024, 3, 15), today=date(2024, 4, 1))


@pytest.mark.asyncio
async def test_mark_unpaid_unknown_rule(mock_db):
    mock_db.payment_rules.find_one.return_value = None

    with patch("app.services.obligation_service.get_database", return_value=mock_db):
        with pytest.raises(NotFoundError):
            await ObligationService.mark_unpaid(str(ObjectId()), date(2024, 2, 15))


@pytest.mark.asyncio
async def test_create_stripe_obligation_skips_rule_checks(mock_db):
    mock_db.payment_obligations.insert_one.return_value = MagicMock(inserted_id=ObjectId())
    obligation_in = ObligationCreate(
        stripe_invoice_id="in_123",
        client_name="Stripe Client",
        amount_due_cents=2500,
        due_date="2024-02-20T10:00:00Z",
        origin=PaymentOrigin.STRIPE,
        status=ObligationStatus.RETRYING,
    )

    with patch("app.services.obligation_service.get_database", return_value=mock_db):
        obligation = await ObligationService.create(obligation_in)

    assert obligation.due_date == date(2024, 2, 20)
    mock_db.payment_rules.find_one.assert_not_called()


@pytest.mark.asyncio
async def test_settle_records_settlement_in_transaction(mock_db):
    obligation_id = ObjectId()
    mock_db.payment_obligations.find_one_and_update.return_value = _obligation_doc(obligation_id, "settled")
    mock_db.payment_settlements.insert_one.return_value = MagicMock(inserted_id=ObjectId())

    with patch("app.services.obligation_service.get_database", return_value=mock_db):
        obligation = await ObligationService.settle(
            str(obligation_id), SettleRequest(amount_paid_cents=10000, payment_method="bank_transfer")
        )

    assert obligation.status == ObligationStatus.SETTLED
    query, update = mock_db.payment_obligations.find_one_and_update.call_args[0]
    assert query["_id"] == obligation_id
    assert set(query["status"]["$in"]) == {"pending", "grace", "retrying", "delinquent", "failed"}
    assert update["$set"]["status"] == "settled"

    settlement = mock_db.payment_settlements.insert_one.call_args[0][0]
    assert settlement["obligation_id"] == str(obligation_id)
    assert settlement["amount_paid_cents"] == 10000
    assert settlement["payment_method"] == "bank_transfer"
    assert mock_db.payment_settlements.insert_one.call_args.kwargs["session"] is mock_db.session
    mock_db.client.start_session.assert_awaited_once()


@pytest.mark.asyncio
async def test_settle_written_off_obligation_is_refused(mock_db):
    obligation_id = ObjectId()
    mock_db.payment_obligations.find_one_and_update.return_value = None
    mock_db.payment_obligations.find_one.return_value = _obligation_doc(obligation_id, "written_off")

    with patch("app.services.obligation_service.get_database", return_value=mock_db):
        with pytest.raises(InvalidTransitionError) as exc_info:
            await ObligationService.settle(str(obligation_id), SettleRequest(amount_paid_cents=100))

    assert exc_info.value.current_status == "written_off"
    mock_db.payment_settlements.insert_one.assert_not_called()


@pytest.mark.asyncio
async def test_settle_missing_obligation(mock_db):
    with patch("app.services.obligation_service.get_database", return_value=mock_db):
        with pytest.raises(NotFoundError):
            await ObligationService.settle("not-an-id", SettleRequest(amount_paid_cents=100))


@pytest.mark.asyncio
async def test_unsettle_reopens_and_removes_settlements(mock_db):
    obligation_id = ObjectId()
    mock_db.payment_obligations.find_one_and_update.return_value = _obligation_doc(obligation_id, "pending")
    mock_db.payment_settlements.delete_many.return_value = MagicMock(deleted_count=1)

    with patch("app.services.obligation_service.get_database", return_value=mock_db):
        obligation = await ObligationService.unsettle(str(obligation_id))

    assert obligation.status == ObligationStatus.PENDING
    query, update = mock_db.payment_obligations.find_one_and_update.call_args[0]
    assert query["status"] == {"$in": ["settled"]}
    assert update["$set"]["status"] == "pending"
    mock_db.payment_settlements.delete_many.assert_awaited_once()
    assert mock_db.payment_settlements.delete_many.call_args[0][0] == {
        "obligation_id": {"$in": [str(obligation_id)]}
    }


@pytest.mark.asyncio
async def test_unsettle_pending_obligation_is_refused(mock_db):
    obligation_id = ObjectId()
    mock_db.payment_obligations.find_one_and_update.return_value = None
    mock_db.payment_obligations.find_one.return_value = _obligation_doc(obligation_id, "pending")

    with patch("app.services.obligation_service.get_database", return_value=mock_db):
        with pytest.raises(InvalidTransitionError):
            await ObligationService.unsettle(str(obligation_id))

    mock_db.payment_settlements.delete_many.assert_not_called()


@pytest.mark.asyncio
async def test_write_off_stores_note(mock_db):
    obligation_id = ObjectId()
    mock_db.payment_obligations.find_one_and_update.return_value = _obligation_doc(
        obligation_id, "written_off", notes="Client went bankrupt"
    )

    with patch("app.services.obligation_service.get_database", return_value=mock_db):
        obligation = await ObligationService.write_off(str(obligation_id), "  Client went bankrupt ")

    assert obligation.status == ObligationStatus.WRITTEN_OFF
    update = mock_db.payment_obligations.find_one_and_update.call_args[0][1]
    assert update["$set"]["notes"] == "Client went bankrupt"
    assert update["$set"]["status"] == "written_off"


@pytest.mark.asyncio
async def test_write_off_requires_note(mock_db):
    with patch("app.services.obligation_service.get_database", return_value=mock_db):
        with pytest.raises(PaymentValidationError):
            await ObligationService.write_off(str(ObjectId()), "   ")

    mock_db.payment_obligations.find_one_and_update.assert_not_called()


@pytest.mark.asyncio
async def test_list_outstanding(mock_db, make_cursor):
    mock_db.payment_obligations.find.return_value = make_cursor([
        _obligation_doc(ObjectId(), "pending"),
        {"_id": ObjectId(), "status": "pending"},  # malformed, skipped
    ])

    with patch("app.services.obligation_service.get_database", return_value=mock_db):
        obligations = await ObligationService.list_obligations(outstanding=True)

    assert len(obligations) == 1
    query = mock_db.payment_obligations.find.call_args[0][0]
    assert "settled" not in query["status"]["$in"]


@pytest.mark.asyncio
async def test_list_by_rule(mock_db, make_cursor):
    rule_id = str(ObjectId())
    mock_db.payment_obligations.find.return_value = make_cursor([
        _obligation_doc(ObjectId(), "settled", custom_payment_id=rule_id),
    ])

    with patch("app.services.obligation_service.get_database", return_value=mock_db):
        obligations = await ObligationService.list_obligations(rule_id=rule_id)

    assert [o.custom_payment_id for o in obligations] == [rule_id]
    assert mock_db.payment_obligations.find.call_args[0][0] == {"custom_payment_id": rule_id}


@pytest.mark.asyncio
async def test_create_custom_obligation_off_schedule_is_refused(mock_db):
    rule_id = ObjectId()
    mock_db.payment_rules.find_one.return_value = _rule_doc(rule_id)
    obligation_in = ObligationCreate(
        custom_payment_id=str(rule_id),
        client_name="Acme GmbH",
        amount_due_cents=10000,
        due_date="2024-02-16",
        origin=PaymentOrigin.CUSTOM,
    )

    with patch("app.services.obligation_service.get_database", return_value=mock_db):
        with pytest.raises(PaymentValidationError):
            await ObligationService.create(obligation_in, today=date(2024, 3, 1))

    mock_db.payment_obligations.insert_one.assert_not_called()
