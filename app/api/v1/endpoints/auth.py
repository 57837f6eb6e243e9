import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.core.auth import authenticate_operator, create_access_token, get_current_operator
from app.schemas.auth import LoginRequest, Operator, TokenResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=TokenResponse)
async def login(credentials: LoginRequest):
    """Login with the operator email and password"""
    if not authenticate_operator(credentials.email, credentials.password):
        logger.warning("Rejected operator login for %s", credentials.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )
    return TokenResponse(access_token=create_access_token(credentials.email.lower()))


@router.get("/me", response_model=Operator)
async def get_current_operator_info(operator: Operator = Depends(get_current_operator)):
    """Get current operator information"""
    return operator
