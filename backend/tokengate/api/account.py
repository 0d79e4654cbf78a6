"""Self-service endpoints for the signed-in account.

Every route here sits under /account, so BearerAuthMiddleware has already
verified the access token and set ``request.state.account_id``.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status

from tokengate.api.auth import get_account_service, raise_http_error
from tokengate.schemas.account import (
    AccountResponse,
    AccountUpdatePasswordRequest,
    AccountUpdateRequest,
)
from tokengate.schemas.auth import MessageResponse
from tokengate.services.accounts import AccountService

router = APIRouter(prefix="/account", tags=["account"])


def get_current_account_id(request: Request) -> UUID:
    """Dependency to get the authenticated account id."""
    account_id = getattr(request.state, "account_id", None)
    if account_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return account_id


@router.get("/me", response_model=AccountResponse)
async def get_me(
    account_id: UUID = Depends(get_current_account_id),
    account_service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    try:
        account = await account_service.get_current(account_id)
    except Exception as e:
        raise_http_error(e)
    return AccountResponse.model_validate(account)


@router.put("/me/update", response_model=AccountResponse)
async def update_me(
    request: AccountUpdateRequest,
    account_id: UUID = Depends(get_current_account_id),
    account_service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    """Update name and email of the signed-in account."""
    try:
        account = await account_service.update(
            account_id,
            full_name=request.full_name,
            email=request.email,
        )
    except Exception as e:
        raise_http_error(e)
    return AccountResponse.model_validate(account)


@router.put("/me/update/password", response_model=MessageResponse)
async def update_my_password(
    request: AccountUpdatePasswordRequest,
    account_id: UUID = Depends(get_current_account_id),
    account_service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    """Change the password after checking the current one.

    Tokens already issued stay valid until they expire or are revoked.
    """
    try:
        await account_service.update_password(
            account_id,
            old_password=request.old_password,
            new_password=request.new_password,
        )
    except Exception as e:
        raise_http_error(e)
    return MessageResponse(message="Password updated successfully")
