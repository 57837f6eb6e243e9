from typing import List

from fastapi import APIRouter, Depends, status

from app.api.v1.errors import http_error
from app.core.auth import get_current_operator
from app.schemas.auth import Operator
from app.schemas.payment_rule import ExcludeDateRequest, PaymentRuleCreate, PaymentRuleResponse
from app.services.payment_rule_service import PaymentRuleService
from app.utils.errors import PaymentCalendarError

router = APIRouter()


@router.get("/", response_model=List[PaymentRuleResponse])
async def list_payment_rules(operator: Operator = Depends(get_current_operator)):
    """List all custom payments, oldest start date first"""
    return await PaymentRuleService.list_rules()


@router.post("/", response_model=PaymentRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_payment_rule(
    rule_in: PaymentRuleCreate,
    operator: Operator = Depends(get_current_operator)
):
    """Register a new recurring payment"""
    return await PaymentRuleService.create(rule_in)


@router.get("/{rule_id}", response_model=PaymentRuleResponse)
async def get_payment_rule(rule_id: str, operator: Operator = Depends(get_current_operator)):
    try:
        return await PaymentRuleService.get(rule_id)
    except PaymentCalendarError as exc:
        raise http_error(exc)


@router.delete("/{rule_id}")
async def delete_payment_rule(rule_id: str, operator: Operator = Depends(get_current_operator)):
    """Delete a payment together with its obligations"""
    try:
        await PaymentRuleService.delete(rule_id)
    except PaymentCalendarError as exc:
        raise http_error(exc)
    return {"message": "Payment deleted successfully"}


@router.post("/{rule_id}/stop", response_model=PaymentRuleResponse)
async def stop_payment_rule(rule_id: str, operator: Operator = Depends(get_current_operator)):
    """Stop future occurrences; past ones stay on the calendar"""
    try:
        return await PaymentRuleService.stop(rule_id)
    except PaymentCalendarError as exc:
        raise http_error(exc)


@router.post("/{rule_id}/exclude-date", response_model=PaymentRuleResponse)
async def exclude_payment_date(
    rule_id: str,
    request: ExcludeDateRequest,
    operator: Operator = Depends(get_current_operator)
):
    """Remove a single occurrence from the calendar"""
    try:
        return await PaymentRuleService.exclude_date(rule_id, request.date)
    except PaymentCalendarError as exc:
        raise http_error(exc)
