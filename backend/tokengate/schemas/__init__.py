# Tokengate Pydantic Schemas
from tokengate.schemas.account import (
    AccountResponse,
    AccountUpdatePasswordRequest,
    AccountUpdateRequest,
    RegistrationRequest,
)
from tokengate.schemas.auth import (
    AuthorizationRequest,
    MessageResponse,
    RefreshRequest,
    TokenResponse,
    UnauthorizationRequest,
)

__all__ = [
    "AccountResponse",
    "AccountUpdatePasswordRequest",
    "AccountUpdateRequest",
    "AuthorizationRequest",
    "MessageResponse",
    "RefreshRequest",
    "RegistrationRequest",
    "TokenResponse",
    "UnauthorizationRequest",
]
