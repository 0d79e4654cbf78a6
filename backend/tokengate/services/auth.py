"""Authentication service: login, logout and refresh-token rotation."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID

from tokengate.core.config import Settings
from tokengate.services.accounts import AccountLookup
from tokengate.services.errors import (
    AccountNotActiveError,
    AccountPasswordHashMissingError,
    EmailAddressNotFoundError,
    IncorrectPasswordError,
    InvalidAccessTokenError,
    InvalidAccessTokenInBodyError,
    InvalidDeviceIdError,
    InvalidRefreshTokenInBodyError,
    InvalidTokenTypeError,
)
from tokengate.services.password import PasswordHasher
from tokengate.services.revocation import RevocationStore
from tokengate.services.tokens import TokenCodec, TokenPayload, TokenType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    """Access and refresh tokens issued together for one device session."""

    access_token: str
    refresh_token: str
    expires_in: int  # access token lifetime in seconds
    token_type: str = "bearer"


def parse_device_id(device_id: UUID | str) -> UUID:
    if isinstance(device_id, UUID):
        return device_id
    try:
        return UUID(device_id)
    except (TypeError, ValueError, AttributeError) as e:
        raise InvalidDeviceIdError("device ID must be a valid UUID") from e


class AuthService:
    """Issues, rotates and revokes token pairs.

    The service does not recover from collaborator errors: lookup and cache
    failures propagate to the caller unchanged.
    """

    def __init__(
        self,
        accounts: AccountLookup,
        revocations: RevocationStore,
        codec: TokenCodec,
        hasher: PasswordHasher,
        access_lifetime: timedelta = timedelta(hours=24),
        refresh_lifetime: timedelta = timedelta(days=30),
    ):
        if access_lifetime >= refresh_lifetime:
            raise ValueError("access_lifetime must be shorter than refresh_lifetime")
        self.accounts = accounts
        self.revocations = revocations
        self.codec = codec
        self.hasher = hasher
        self.access_lifetime = access_lifetime
        self.refresh_lifetime = refresh_lifetime

    @classmethod
    def from_settings(
        cls,
        config: Settings,
        accounts: AccountLookup,
        revocations: RevocationStore,
        codec: TokenCodec,
        hasher: PasswordHasher,
    ) -> "AuthService":
        return cls(
            accounts,
            revocations,
            codec,
            hasher,
            access_lifetime=timedelta(hours=config.access_token_expire_hours),
            refresh_lifetime=timedelta(days=config.refresh_token_expire_days),
        )

    async def authorize(self, email: str, password: str, device_id: UUID | str) -> TokenPair:
        """Verify credentials and issue a token pair bound to the device.

        Raises:
            EmailAddressNotFoundError, AccountNotActiveError,
            AccountPasswordHashMissingError, IncorrectPasswordError,
            InvalidDeviceIdError
        """
        account = await self.accounts.find_by_email(email)
        if account is None:
            # Same KDF cost as the found-account path
            await asyncio.to_thread(self.hasher.verify_dummy, password)
            logger.info("Login rejected: email address not found")
            raise EmailAddressNotFoundError()

        if not account.active:
            logger.info(f"Login rejected: account {account.id} is not active")
            raise AccountNotActiveError()

        if account.password_hash is None:
            logger.warning(f"Login rejected: account {account.id} has no password hash")
            raise AccountPasswordHashMissingError()

        matched = await asyncio.to_thread(
            self.hasher.verify, password, account.password_hash.pass_hashed
        )
        if not matched:
            logger.info(f"Login rejected: incorrect password for account {account.id}")
            raise IncorrectPasswordError()

        device = parse_device_id(device_id)
        pair = self.issue_pair(account.id, device)
        logger.info(f"Account {account.id} authorized on device {device}")
        return pair

    async def unauthorize(self, access_token: str, refresh_token: str) -> None:
        """Revoke both tokens of a pair.

        Both tokens are verified before either is revoked. A revocation write
        failure propagates, since a token left unrevoked stays usable.

        Raises:
            InvalidAccessTokenInBodyError: The access token failed verification.
            InvalidRefreshTokenInBodyError: The refresh token failed verification.
            RevocationStoreError: The revocation cache could not be written.
        """
        try:
            access = self.codec.verify(access_token, TokenType.ACCESS)
        except (InvalidAccessTokenError, InvalidTokenTypeError) as e:
            raise InvalidAccessTokenInBodyError() from e

        try:
            refresh = self.codec.verify(refresh_token, TokenType.REFRESH)
        except (InvalidAccessTokenError, InvalidTokenTypeError) as e:
            raise InvalidRefreshTokenInBodyError() from e

        await self.revocations.revoke(access.jti, access.expires_at)
        await self.revocations.revoke(refresh.jti, refresh.expires_at)
        logger.info(f"Account {access.account_id} unauthorized on device {access.device_id}")

    async def refresh_token(self, refresh_token: str) -> TokenPair:
        """Rotate a refresh token: revoke it and issue a new pair for the same session.

        Raises:
            InvalidRefreshTokenInBodyError: Verification failed, the token was
                already revoked, or its account no longer exists.
            InvalidTokenTypeError: An access token was presented.
            AccountNotActiveError: The account was deactivated since login.
            RevocationStoreError: The revocation cache could not be read or written.
        """
        try:
            old = self.codec.verify(refresh_token, TokenType.REFRESH)
        except InvalidAccessTokenError as e:
            raise InvalidRefreshTokenInBodyError() from e

        if await self.revocations.is_revoked(old.jti):
            logger.warning(f"Revoked refresh token presented (jti={old.jti}, account={old.account_id})")
            raise InvalidRefreshTokenInBodyError()

        account = await self.accounts.find_by_id(old.account_id)
        if account is None:
            raise InvalidRefreshTokenInBodyError()
        if not account.active:
            raise AccountNotActiveError()

        # One-time use: the old refresh token is dead before the new pair exists
        await self.revocations.revoke(old.jti, old.expires_at)
        pair = self.issue_pair(old.account_id, old.device_id)
        logger.info(f"Rotated refresh token for account {old.account_id} on device {old.device_id}")
        return pair

    def issue_pair(self, account_id: UUID, device_id: UUID) -> TokenPair:
        access = self._issue(account_id, device_id, TokenType.ACCESS, self.access_lifetime)
        refresh = self._issue(account_id, device_id, TokenType.REFRESH, self.refresh_lifetime)
        return TokenPair(
            access_token=access,
            refresh_token=refresh,
            expires_in=int(self.access_lifetime.total_seconds()),
        )

    def _issue(
        self, account_id: UUID, device_id: UUID, token_type: TokenType, lifetime: timedelta
    ) -> str:
        payload: TokenPayload = self.codec.new_payload(account_id, device_id, token_type, lifetime)
        return self.codec.issue(payload)
