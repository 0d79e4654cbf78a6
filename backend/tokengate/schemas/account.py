"""Pydantic schemas for account API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from tokengate.schemas.auth import EMAIL_PATTERN


class RegistrationRequest(BaseModel):
    """Request to create a new account."""

    full_name: str = Field(..., min_length=3, max_length=100)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(
        ...,
        min_length=8,
        max_length=100,
        description="Password (8-100 characters)",
    )


class AccountUpdateRequest(BaseModel):
    """Request to update profile fields."""

    full_name: str = Field(..., min_length=3, max_length=100)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)


class AccountUpdatePasswordRequest(BaseModel):
    """Request for password change."""

    old_password: str = Field(..., min_length=1, max_length=100)
    new_password: str = Field(
        ...,
        min_length=8,
        max_length=100,
        description="New password (8-100 characters)",
    )


class AccountResponse(BaseModel):
    """Response with account information."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    full_name: str
    email: str
    active: bool
    created_at: datetime
    updated_at: datetime | None
