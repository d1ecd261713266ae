"""User-related schemas."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict, EmailStr, Field, TypeAdapter, field_validator

from app.models.user import UserRole, UserStatus

_EMAIL_ADAPTER = TypeAdapter(EmailStr)


def _validate_relaxed_email(value: str) -> str:
    """Allow ``*.local`` placeholder domains while keeping core validation."""

    email = value.strip()
    local_part, _, domain = email.partition("@")
    if local_part and domain.endswith(".local"):
        return email
    return _EMAIL_ADAPTER.validate_python(email)


class UserBase(BaseModel):
    """Shared user fields."""

    email: str
    first_name: str
    last_name: str
    phone_number: str | None = None

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str) -> str:
        return _validate_relaxed_email(value)


class UserCreate(UserBase):
    """Payload for creating a user."""

    password: str = Field(min_length=8)
    role: UserRole = UserRole.CUSTOMER
    status: UserStatus = UserStatus.ACTIVE
    is_corporate: bool = False


class UserRead(UserBase):
    """Serialized user response."""

    id: uuid.UUID
    role: UserRole
    status: UserStatus
    is_corporate: bool

    model_config = ConfigDict(from_attributes=True)
