from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.core.auth import get_current_operator
from app.schemas.auth import Operator
from app.schemas.payment_history import (
    PaymentHistoryUpsert,
    PaymentHistoryUpsertResponse,
    StripePaymentResponse,
)
from app.services.payment_history_service import PaymentHistoryService

router = APIRouter()


@router.get("/", response_model=List[StripePaymentResponse])
async def list_payment_history(
    year: Optional[int] = Query(None, ge=1970, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    operator: Operator = Depends(get_current_operator)
):
    """Stripe payment history, for one month when year and month are given"""
    return await PaymentHistoryService.list_payments(year, month)


@router.put("/", response_model=PaymentHistoryUpsertResponse)
async def upsert_payment_history(
    request: PaymentHistoryUpsert,
    operator: Operator = Depends(get_current_operator)
):
    """Store the history entries pushed by the Stripe sync job"""
    written = await PaymentHistoryService.upsert(request.payments)
    return PaymentHistoryUpsertResponse(written=written)
