"""Pydantic schemas for the auth endpoints."""

from typing import Optional

from pydantic import BaseModel, Field

from userhub.schemas.user import Email, Phone, UserRead


class LoginRequest(BaseModel):
    """Login by email or phone. At least one must be given."""

    email: Optional[Email] = None
    phone: Optional[Phone] = None
    password: str = Field(min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthResult(TokenPair):
    """Tokens plus the user they were issued for."""

    user: UserRead
