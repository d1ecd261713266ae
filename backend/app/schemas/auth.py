"""Authentication schemas."""
from __future__ import annotations

from pydantic import BaseModel, Field

from app.schemas.user import UserBase, UserRead


class Token(BaseModel):
    """Response body for access tokens."""

    access_token: str
    token_type: str = "bearer"


class RegistrationRequest(UserBase):
    """Self-service registration payload for customers."""

    password: str = Field(min_length=8)


class RegistrationResponse(BaseModel):
    """Response after successful self-service registration."""

    token: Token
    user: UserRead
