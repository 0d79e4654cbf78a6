"""Authentication API endpoints."""

import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from tokengate.core import get_db, settings
from tokengate.schemas.account import AccountResponse, RegistrationRequest
from tokengate.schemas.auth import (
    AuthorizationRequest,
    MessageResponse,
    RefreshRequest,
    TokenResponse,
    UnauthorizationRequest,
)
from tokengate.services.accounts import AccountRepository, AccountService
from tokengate.services.auth import AuthService, TokenPair
from tokengate.services.errors import (
    AccountNotFoundError,
    CredentialError,
    EmailAlreadyExistsError,
    InputError,
    PasswordHashError,
    RevocationStoreError,
    TokenError,
    WrongOldPasswordError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth/account", tags=["auth"])

# Single detail for every credential failure
INVALID_CREDENTIALS_DETAIL = "Invalid email or password"


def get_account_repository(db: AsyncSession = Depends(get_db)) -> AccountRepository:
    """Dependency to get the account repository for this request."""
    return AccountRepository(db)


def get_auth_service(
    request: Request,
    accounts: AccountRepository = Depends(get_account_repository),
) -> AuthService:
    """Dependency to get auth service wired to the app's codec and revocation store."""
    state = request.app.state
    return AuthService.from_settings(
        settings,
        accounts=accounts,
        revocations=state.revocations,
        codec=state.codec,
        hasher=state.hasher,
    )


def raise_http_error(e: Exception) -> NoReturn:
    """Translate a service exception into the matching HTTPException."""
    if isinstance(e, CredentialError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_CREDENTIALS_DETAIL,
        ) from e
    if isinstance(e, TokenError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
    if isinstance(e, InputError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=[{"loc": ["body", e.field], "msg": str(e)}] if e.field else str(e),
        ) from e
    if isinstance(e, EmailAlreadyExistsError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    if isinstance(e, AccountNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    if isinstance(e, WrongOldPasswordError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    if isinstance(e, RevocationStoreError | PasswordHashError):
        logger.error(f"Authentication infrastructure failure: {e!r}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal authentication error",
        ) from e
    raise e


def _token_response(pair: TokenPair) -> TokenResponse:
    return TokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        token_type=pair.token_type,
        expires_in=pair.expires_in,
    )


def get_account_service(
    request: Request,
    repository: AccountRepository = Depends(get_account_repository),
) -> AccountService:
    """Dependency to get the account service."""
    return AccountService(
        repository,
        request.app.state.hasher,
        active_on_register=settings.account_active_on_register,
    )


@router.post(
    "/registration",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register(
    request: RegistrationRequest,
    account_service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    """Create a new account."""
    try:
        account = await account_service.register(
            full_name=request.full_name,
            email=request.email,
            password=request.password,
        )
    except Exception as e:
        raise_http_error(e)
    return AccountResponse.model_validate(account)


@router.post("/authorization", response_model=TokenResponse)
async def authorize(
    request: AuthorizationRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    """Authenticate with email and password and get a token pair for a device."""
    try:
        pair = await auth_service.authorize(
            email=request.email,
            password=request.password,
            device_id=request.device_id,
        )
    except Exception as e:
        raise_http_error(e)
    return _token_response(pair)


@router.post("/unauthorization", response_model=MessageResponse)
async def unauthorize(
    request: UnauthorizationRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Log out by revoking both tokens of a pair.

    Requires a valid bearer access token (checked by BearerAuthMiddleware).
    """
    try:
        await auth_service.unauthorize(request.access_token, request.refresh_token)
    except Exception as e:
        raise_http_error(e)
    return MessageResponse(message="Logged out successfully")


@router.post("/refresh", response_model=TokenResponse)
async def refresh_tokens(
    request: RefreshRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    """Exchange a refresh token for a new token pair.

    The presented refresh token is revoked (token rotation).
    """
    try:
        pair = await auth_service.refresh_token(request.refresh_token)
    except Exception as e:
        raise_http_error(e)
    return _token_response(pair)
