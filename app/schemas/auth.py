from pydantic import BaseModel


class LoginRequest(BaseModel):
    """Schema for operator login"""
    email: str
    password: str


class TokenResponse(BaseModel):
    """Schema for authentication token response"""
    access_token: str
    token_type: str = "bearer"


class Operator(BaseModel):
    email: str
    role: str = "operator"
