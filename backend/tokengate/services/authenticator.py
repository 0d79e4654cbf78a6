"""Bearer-token authentication for inbound requests."""

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from tokengate.services.errors import (
    InvalidAccessTokenError,
    InvalidTokenTypeError,
    MissingAuthorizationHeaderError,
)
from tokengate.services.revocation import RevocationStore
from tokengate.services.tokens import TokenCodec, TokenType

logger = logging.getLogger(__name__)

BEARER_SCHEME = "Bearer"


@dataclass(frozen=True)
class AuthenticatedPrincipal:
    """Identity resolved from a verified, unrevoked access token."""

    account_id: UUID
    device_id: UUID
    token_id: UUID
    expires_at: datetime


def extract_bearer_token(authorization: str | None) -> str:
    """Return the token from an ``Authorization: Bearer <token>`` header value.

    Raises:
        MissingAuthorizationHeaderError: The header is absent or empty.
        InvalidAccessTokenError: Any shape other than exactly ``Bearer <token>``.
    """
    if not authorization:
        raise MissingAuthorizationHeaderError()
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != BEARER_SCHEME or not parts[1]:
        raise InvalidAccessTokenError()
    return parts[1]


class RequestAuthenticator:
    """Resolves a bearer header to an account identity.

    Performs one cache read per request and never loads the account record.
    """

    def __init__(self, codec: TokenCodec, revocations: RevocationStore):
        self.codec = codec
        self.revocations = revocations

    async def authenticate(self, authorization: str | None) -> AuthenticatedPrincipal:
        """Authenticate a request from its Authorization header value.

        Raises:
            MissingAuthorizationHeaderError: No header was sent.
            InvalidAccessTokenError: Bad header shape, failed verification
                (any subclass), or a revoked token.
            InvalidTokenTypeError: A refresh token was presented.
            RevocationStoreError: The revocation cache could not be read.
        """
        token = extract_bearer_token(authorization)
        payload = self.codec.verify(token)

        if payload.token_type != TokenType.ACCESS:
            logger.info(f"Rejected {payload.token_type} used as bearer (jti={payload.jti})")
            raise InvalidTokenTypeError()

        if await self.revocations.is_revoked(payload.jti):
            logger.warning(f"Revoked token used (jti={payload.jti}, account={payload.account_id})")
            raise InvalidAccessTokenError()

        return AuthenticatedPrincipal(
            account_id=payload.account_id,
            device_id=payload.device_id,
            token_id=payload.jti,
            expires_at=payload.expires_at,
        )
