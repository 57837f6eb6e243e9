import logging
from datetime import date, datetime, timezone
from typing import List, Optional

from app.db.mongo import get_database, transaction
from app.models.obligation import (
    Obligation,
    ObligationStatus,
    PaymentOrigin,
    UNRESOLVED_STATUSES,
)
from app.models.settlement import Settlement
from app.repositories.obligation_repo import ObligationRepository
from app.repositories.payment_rule_repo import PaymentRuleRepository
from app.schemas.obligation import ObligationCreate, SettleRequest
from app.services.projection import project
from app.utils.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PaymentValidationError,
)

logger = logging.getLogger(__name__)


async def _transition_refused(repo: ObligationRepository, obligation_id: str, action: str):
    """Explain why a compare-and-set status update matched nothing."""
    current = await repo.get(obligation_id)
    if current is None:
        raise NotFoundError("Obligation", obligation_id)
    raise InvalidTransitionError(action, current.status.value)


class ObligationService:
    @staticmethod
    async def list_obligations(
        status: Optional[ObligationStatus] = None,
        outstanding: bool = False,
        rule_id: Optional[str] = None,
    ) -> List[Obligation]:
        db = await get_database()
        repo = ObligationRepository(db)
        if rule_id:
            return await repo.list_by_rule(rule_id)
        if outstanding:
            return await repo.list_outstanding()
        return await repo.list_obligations([status] if status else None)

    @staticmethod
    async def list_settlements(obligation_id: str) -> List[Settlement]:
        db = await get_database()
        repo = ObligationRepository(db)
        if not await repo.get(obligation_id):
            raise NotFoundError("Obligation", obligation_id)
        return await repo.list_settlements(obligation_id)

    @staticmethod
    async def create(obligation_in: ObligationCreate, today: Optional[date] = None) -> Obligation:
        """
        Raise a new obligation.

        A custom obligation must sit on a real occurrence of its rule, and a
        rule occurrence can only carry one obligation, whatever its status;
        a second "mark as unpaid" for the same date is refused.
        """
        db = await get_database()
        repo = ObligationRepository(db)

        if obligation_in.origin == PaymentOrigin.CUSTOM:
            rule = await PaymentRuleRepository(db).get_rule(obligation_in.custom_payment_id)
            if not rule:
                raise NotFoundError("Payment rule", obligation_in.custom_payment_id)
            due_date = obligation_in.due_date
            if not project(rule, due_date, due_date, today):
                raise PaymentValidationError(
                    f"{due_date.isoformat()} is not an occurrence of payment {rule.id}"
                )
            existing = await repo.find_for_occurrence(rule.id, obligation_in.due_date)
            if existing:
                raise ConflictError(
                    f"Obligation {existing.id} already exists for payment {rule.id} "
                    f"on {obligation_in.due_date.isoformat()}"
                )

        obligation = await repo.insert(Obligation(**obligation_in.model_dump()))
        logger.info(
            "Raised %s obligation %s for %s: %d %s due %s",
            obligation.origin.value, obligation.id, obligation.client_name,
            obligation.amount_due_cents, obligation.currency, obligation.due_date
        )
        return obligation

    @staticmethod
    async def mark_unpaid(
        rule_id: str, due_date: date, notes: Optional[str] = None, today: Optional[date] = None
    ) -> Obligation:
        """Turn a paid-looking rule occurrence into an outstanding debt."""
        db = await get_database()
        rule = await PaymentRuleRepository(db).get_rule(rule_id)
        if not rule:
            raise NotFoundError("Payment rule", rule_id)
        return await ObligationService.create(ObligationCreate(
            custom_payment_id=rule.id,
            client_name=rule.client_name,
            amount_due_cents=rule.amount_cents,
            currency=rule.currency,
            due_date=due_date,
            origin=PaymentOrigin.CUSTOM,
            notes=notes or rule.description or "Custom payment marked as unpaid",
        ), today=today)

    @staticmethod
    async def settle(obligation_id: str, settle_in: SettleRequest) -> Obligation:
        """Record the payment and mark the obligation settled, atomically."""
        db = await get_database()
        repo = ObligationRepository(db)

        async with transaction(db) as session:
            obligation = await repo.transition(
                obligation_id, UNRESOLVED_STATUSES, ObligationStatus.SETTLED, session=session
            )
            if obligation is None:
                await _transition_refused(repo, obligation_id, "settle")
            await repo.insert_settlement(Settlement(
                obligation_id=obligation.id,
                amount_paid_cents=settle_in.amount_paid_cents,
                currency=obligation.currency,
                paid_at=settle_in.paid_at or datetime.now(timezone.utc),
                payment_method=settle_in.payment_method,
                reference=settle_in.reference,
                notes=settle_in.notes,
            ), session=session)

        if settle_in.amount_paid_cents != obligation.amount_due_cents:
            logger.warning(
                "Obligation %s settled with %d of %d cents",
                obligation_id, settle_in.amount_paid_cents, obligation.amount_due_cents
            )
        logger.info("Settled obligation %s", obligation_id)
        return obligation

    @staticmethod
    async def unsettle(obligation_id: str) -> Obligation:
        """Reopen a settled obligation; its settlement records are removed."""
        db = await get_database()
        repo = ObligationRepository(db)

        async with transaction(db) as session:
            obligation = await repo.transition(
                obligation_id, {ObligationStatus.SETTLED}, ObligationStatus.PENDING, session=session
            )
            if obligation is None:
                await _transition_refused(repo, obligation_id, "unsettle")
            await repo.delete_settlements([obligation.id], session=session)

        logger.info("Reverted obligation %s to unpaid", obligation_id)
        return obligation

    @staticmethod
    async def write_off(obligation_id: str, notes: str) -> Obligation:
        """Forgive an unresolved obligation."""
        if not notes or not notes.strip():
            raise PaymentValidationError("A note is required to write off a debt")
        db = await get_database()
        repo = ObligationRepository(db)

        obligation = await repo.transition(
            obligation_id, UNRESOLVED_STATUSES, ObligationStatus.WRITTEN_OFF,
            extra={"notes": notes.strip()}
        )
        if obligation is None:
            await _transition_refused(repo, obligation_id, "write off")
        logger.info("Wrote off obligation %s", obligation_id)
        return obligation
