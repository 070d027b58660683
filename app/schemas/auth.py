from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)


class LoginResponse(BaseModel):
    id: int
    email: EmailStr
    access_token: str
    refresh_token: str
    token_type: str = 'bearer'
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class AccessTokenResponse(BaseModel):
    access_token: str
    token_type: str = 'bearer'


class LogoutResponse(BaseModel):
    user_id: int
    message: str = 'User logged out'
