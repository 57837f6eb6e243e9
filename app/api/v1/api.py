from fastapi import APIRouter
from app.api.v1.endpoints import auth, payment_rules, obligations, payment_history, calendar

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(payment_rules.router, prefix="/payment-rules", tags=["payment rules"])
api_router.include_router(obligations.router, prefix="/payment-obligations", tags=["payment obligations"])
api_router.include_router(payment_history.router, prefix="/payment-history", tags=["payment history"])
api_router.include_router(calendar.router, prefix="/calendar", tags=["calendar"])
