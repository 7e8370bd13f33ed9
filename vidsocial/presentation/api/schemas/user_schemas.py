"""Pydantic schemas for user API endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class UserRegisterRequest(BaseModel):
    """Request schema for user registration."""

    name: str = Field(min_length=1, max_length=120)
    email: EmailStr
    password: str


class UserLoginRequest(BaseModel):
    """Request schema for user login."""

    email: EmailStr
    password: str


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class UserResponse(BaseModel):
    """Response schema for user data."""

    id: int
    name: str
    email: str
    status: str
    status_reason: Optional[str] = None
    status_expiry: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    created_at: datetime


class TokenPairResponse(BaseModel):
    """Access and refresh tokens handed out on login, registration and refresh."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class UserAuthResponse(TokenPairResponse):
    user: UserResponse


class UpdatePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class PasswordUpdateResponse(UserAuthResponse):
    message: str
