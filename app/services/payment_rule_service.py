import logging
from typing import List

from app.db.mongo import get_database, transaction
from app.models.payment_rule import PaymentRule
from app.repositories.obligation_repo import ObligationRepository
from app.repositories.payment_rule_repo import PaymentRuleRepository
from app.schemas.payment_rule import PaymentRuleCreate
from app.utils.errors import NotFoundError

logger = logging.getLogger(__name__)


class PaymentRuleService:
    @staticmethod
    async def list_rules() -> List[PaymentRule]:
        db = await get_database()
        return await PaymentRuleRepository(db).list_rules()

    @staticmethod
    async def get(rule_id: str) -> PaymentRule:
        db = await get_database()
        rule = await PaymentRuleRepository(db).get_rule(rule_id)
        if not rule:
            raise NotFoundError("Payment rule", rule_id)
        return rule

    @staticmethod
    async def create(rule_in: PaymentRuleCreate) -> PaymentRule:
        db = await get_database()
        rule = PaymentRule(**rule_in.model_dump())
        rule = await PaymentRuleRepository(db).insert_rule(rule)
        logger.info(
            "Created %s payment rule %s for %s (%d %s)",
            rule.frequency.value, rule.id, rule.client_name, rule.amount_cents, rule.currency
        )
        return rule

    @staticmethod
    async def stop(rule_id: str) -> PaymentRule:
        """Cancel a recurring payment. Past occurrences stay on the calendar."""
        db = await get_database()
        rule = await PaymentRuleRepository(db).deactivate(rule_id)
        if not rule:
            raise NotFoundError("Payment rule", rule_id)
        logger.info("Stopped payment rule %s", rule_id)
        return rule

    @staticmethod
    async def exclude_date(rule_id: str, date_key: str) -> PaymentRule:
        """Delete a single occurrence of a rule."""
        db = await get_database()
        rule = await PaymentRuleRepository(db).add_excluded_date(rule_id, date_key)
        if not rule:
            raise NotFoundError("Payment rule", rule_id)
        logger.info("Excluded %s from payment rule %s", date_key, rule_id)
        return rule

    @staticmethod
    async def delete(rule_id: str) -> None:
        """Delete a rule together with its obligations and their settlements."""
        db = await get_database()
        rule_repo = PaymentRuleRepository(db)
        obligation_repo = ObligationRepository(db)

        if not await rule_repo.get_rule(rule_id):
            raise NotFoundError("Payment rule", rule_id)

        async with transaction(db) as session:
            obligation_ids = await obligation_repo.delete_by_rule(rule_id, session=session)
            await obligation_repo.delete_settlements(obligation_ids, session=session)
            await rule_repo.delete_rule(rule_id, session=session)

        logger.info(
            "Deleted payment rule %s and %d related obligation(s)", rule_id, len(obligation_ids)
        )
