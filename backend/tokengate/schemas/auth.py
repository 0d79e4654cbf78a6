"""Pydantic schemas for authentication API."""

from pydantic import BaseModel, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class AuthorizationRequest(BaseModel):
    """Request for login on a device."""

    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1, max_length=100)
    device_id: str = Field(..., min_length=1, description="Client device UUID the tokens are bound to")


class UnauthorizationRequest(BaseModel):
    """Request to revoke both tokens of a pair."""

    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    """Request for token refresh."""

    refresh_token: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    """Response with an access/refresh token pair."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token expiry in seconds")


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str
