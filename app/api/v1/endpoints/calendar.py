from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.v1.errors import http_error
from app.core.auth import get_current_operator
from app.schemas.actions import ActionRequest, ActionResult
from app.schemas.auth import Operator
from app.schemas.calendar import CalendarDayResponse, CalendarMonthResponse
from app.services.action_service import ActionService
from app.services.calendar_service import CalendarService
from app.utils.errors import PaymentCalendarError

router = APIRouter()


@router.get("/", response_model=CalendarMonthResponse)
async def get_calendar_month(
    year: Optional[int] = Query(None, ge=1970, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    today: Optional[date] = None,
    operator: Operator = Depends(get_current_operator)
):
    """Calendar entries, summary and outstanding debts for one month (defaults to the current month)"""
    today = today or date.today()
    return await CalendarService.month_view(year or today.year, month or today.month, today)


@router.get("/day/{day}", response_model=CalendarDayResponse)
async def get_calendar_day(
    day: date,
    today: Optional[date] = None,
    operator: Operator = Depends(get_current_operator)
):
    """Entries shown in the day dialog"""
    return await CalendarService.day_view(day, today)


@router.post("/actions", response_model=ActionResult)
async def run_calendar_action(
    request: ActionRequest,
    today: Optional[date] = None,
    operator: Operator = Depends(get_current_operator)
):
    """Run one operator action (settle, write off, unsettle, mark unpaid, stop, delete, exclude date)"""
    try:
        return await ActionService.dispatch(request.action, today=today)
    except PaymentCalendarError as exc:
        raise http_error(exc)
