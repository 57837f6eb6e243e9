import logging
from datetime import date
from typing import Optional

from app.models.obligation import Obligation
from app.models.payment_rule import PaymentRule
from app.schemas.actions import (
    ActionResult,
    DeleteRuleAction,
    ExcludeDateAction,
    MarkUnpaidAction,
    OperatorAction,
    SettleAction,
    StopRuleAction,
    UnsettleAction,
    WriteOffAction,
)
from app.schemas.obligation import ObligationResponse, SettleRequest
from app.schemas.payment_rule import PaymentRuleResponse
from app.services.obligation_service import ObligationService
from app.services.payment_rule_service import PaymentRuleService

logger = logging.getLogger(__name__)


def _obligation_result(kind: str, obligation: Obligation) -> ActionResult:
    response = ObligationResponse.model_validate(obligation.model_dump(by_alias=True))
    return ActionResult(kind=kind, result=response.model_dump(by_alias=True, mode="json"))


def _rule_result(kind: str, rule: PaymentRule) -> ActionResult:
    response = PaymentRuleResponse.model_validate(rule.model_dump(by_alias=True))
    return ActionResult(kind=kind, result=response.model_dump(by_alias=True, mode="json"))


class ActionService:
    @staticmethod
    async def dispatch(action: OperatorAction, today: Optional[date] = None) -> ActionResult:
        """Run a single operator action from the calendar screen."""
        logger.info("Dispatching calendar action %s", action.kind)

        if isinstance(action, SettleAction):
            obligation = await ObligationService.settle(action.obligation_id, SettleRequest(
                amount_paid_cents=action.amount_paid_cents,
                payment_method=action.payment_method,
                reference=action.reference,
                notes=action.notes,
            ))
            return _obligation_result(action.kind, obligation)

        if isinstance(action, WriteOffAction):
            obligation = await ObligationService.write_off(action.obligation_id, action.notes)
            return _obligation_result(action.kind, obligation)

        if isinstance(action, UnsettleAction):
            obligation = await ObligationService.unsettle(action.obligation_id)
            return _obligation_result(action.kind, obligation)

        if isinstance(action, MarkUnpaidAction):
            obligation = await ObligationService.mark_unpaid(
                action.rule_id, action.due_date, action.notes, today=today
            )
            return _obligation_result(action.kind, obligation)

        if isinstance(action, StopRuleAction):
            return _rule_result(action.kind, await PaymentRuleService.stop(action.rule_id))

        if isinstance(action, ExcludeDateAction):
            rule = await PaymentRuleService.exclude_date(action.rule_id, action.date)
            return _rule_result(action.kind, rule)

        if isinstance(action, DeleteRuleAction):
            await PaymentRuleService.delete(action.rule_id)
            return ActionResult(kind=action.kind)

        raise ValueError(f"Unsupported action: {action!r}")
