from typing import List, Optional

from fastapi import APIRouter, Depends

from app.api.v1.errors import http_error
from app.core.auth import get_current_operator
from app.models.obligation import ObligationStatus
from app.schemas.auth import Operator
from app.schemas.obligation import (
    ObligationCreate,
    ObligationResponse,
    SettleRequest,
    SettlementResponse,
    WriteOffRequest,
)
from app.services.obligation_service import ObligationService
from app.utils.errors import PaymentCalendarError

router = APIRouter()


@router.get("/", response_model=List[ObligationResponse])
async def list_obligations(
    status: Optional[ObligationStatus] = None,
    outstanding: bool = False,
    rule_id: Optional[str] = None,
    operator: Operator = Depends(get_current_operator)
):
    """List obligations: one status, only the unresolved ones, or those of one payment rule"""
    return await ObligationService.list_obligations(status=status, outstanding=outstanding, rule_id=rule_id)


@router.post("/", response_model=ObligationResponse, status_code=201)
async def create_obligation(
    obligation_in: ObligationCreate,
    operator: Operator = Depends(get_current_operator)
):
    """Raise an obligation (mark a payment as unpaid)"""
    try:
        return await ObligationService.create(obligation_in)
    except PaymentCalendarError as exc:
        raise http_error(exc)


@router.post("/{obligation_id}/settle", response_model=ObligationResponse)
async def settle_obligation(
    obligation_id: str,
    settle_in: SettleRequest,
    operator: Operator = Depends(get_current_operator)
):
    """Record a payment and close the debt"""
    try:
        return await ObligationService.settle(obligation_id, settle_in)
    except PaymentCalendarError as exc:
        raise http_error(exc)


@router.post("/{obligation_id}/unsettle", response_model=ObligationResponse)
async def unsettle_obligation(obligation_id: str, operator: Operator = Depends(get_current_operator)):
    """Revert a settled obligation to unpaid"""
    try:
        return await ObligationService.unsettle(obligation_id)
    except PaymentCalendarError as exc:
        raise http_error(exc)


@router.post("/{obligation_id}/write-off", response_model=ObligationResponse)
async def write_off_obligation(
    obligation_id: str,
    request: WriteOffRequest,
    operator: Operator = Depends(get_current_operator)
):
    try:
        return await ObligationService.write_off(obligation_id, request.notes)
    except PaymentCalendarError as exc:
        raise http_error(exc)


@router.get("/{obligation_id}/settlements", response_model=List[SettlementResponse])
async def list_settlements(obligation_id: str, operator: Operator = Depends(get_current_operator)):
    try:
        return await ObligationService.list_settlements(obligation_id)
    except PaymentCalendarError as exc:
        raise http_error(exc)
