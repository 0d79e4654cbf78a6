"""Signed access/refresh tokens.

Tokens are JWTs signed with EdDSA (Ed25519). The claim set carries:

    jti  unique token id (UUID), also the revocation key
    sub  account id (UUID)
    aud  device id (UUID)
    iat, nbf, exp

The token type ("access_token" / "refresh_token") travels in the protected
JOSE header as ``token_type``. It is covered by the signature like the
claims, but kept out of the claim set so purpose checks read a single field
after verification.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any

import jwt
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from jwt.exceptions import (
    ExpiredSignatureError,
    ImmatureSignatureError,
    InvalidSignatureError,
    PyJWTError,
)

from tokengate.core.config import Settings
from tokengate.services.errors import (
    InvalidKeyError,
    InvalidTokenTypeError,
    MalformedClaimError,
    MissingClaimError,
    TokenDecodeError,
    TokenExpiredError,
    TokenNotYetValidError,
)

logger = logging.getLogger(__name__)

ALGORITHM = "EdDSA"
TOKEN_TYPE_HEADER = "token_type"

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


class TokenType(StrEnum):
    ACCESS = "access_token"
    REFRESH = "refresh_token"


@dataclass(frozen=True)
class TokenPayload:
    """Data embedded in a signed token."""

    jti: uuid.UUID
    account_id: uuid.UUID
    device_id: uuid.UUID
    issued_at: datetime
    not_before: datetime
    expires_at: datetime
    token_type: TokenType

    @classmethod
    def new(
        cls,
        account_id: uuid.UUID,
        device_id: uuid.UUID,
        token_type: TokenType,
        lifetime: timedelta,
        now: datetime | None = None,
    ) -> "TokenPayload":
        """Build a payload with a fresh random jti, valid from now for ``lifetime``."""
        # JWT timestamps are whole seconds; truncate so a decoded payload compares equal
        issued_at = (now or utcnow()).replace(microsecond=0)
        return cls(
            jti=uuid.uuid4(),
            account_id=account_id,
            device_id=device_id,
            issued_at=issued_at,
            not_before=issued_at,
            expires_at=issued_at + lifetime,
            token_type=token_type,
        )

    def remaining(self, now: datetime | None = None) -> timedelta:
        return self.expires_at - (now or utcnow())


@dataclass(frozen=True)
class SigningKeyPair:
    """Process-wide Ed25519 keypair. Created once at startup and never mutated."""

    private_key: Ed25519PrivateKey
    public_key: Ed25519PublicKey

    @classmethod
    def generate(cls) -> "SigningKeyPair":
        private_key = Ed25519PrivateKey.generate()
        return cls(private_key=private_key, public_key=private_key.public_key())

    @classmethod
    def from_hex(cls, seed_hex: str) -> "SigningKeyPair":
        """Load a keypair from a hex-encoded 32-byte Ed25519 seed.

        Raises:
            InvalidKeyError: If the value is not 64 hex characters.
        """
        if len(seed_hex) != 64:
            raise InvalidKeyError(
                f"Signing key must be exactly 64 hex characters (32 bytes). Got {len(seed_hex)} characters."
            )
        try:
            seed = bytes.fromhex(seed_hex)
        except ValueError as e:
            raise InvalidKeyError(f"Signing key must be valid hexadecimal: {e}") from e
        private_key = Ed25519PrivateKey.from_private_bytes(seed)
        return cls(private_key=private_key, public_key=private_key.public_key())

    @classmethod
    def from_settings(cls, config: Settings) -> "SigningKeyPair":
        if config.token_signing_key:
            return cls.from_hex(config.token_signing_key)
        logger.warning(
            "TOKEN_SIGNING_KEY not set - generated an ephemeral signing keypair. "
            "Tokens will not survive a restart or validate on other workers."
        )
        return cls.generate()

    @property
    def public_key_hex(self) -> str:
        return self.public_key.public_bytes(Encoding.Raw, PublicFormat.Raw).hex()


def load_public_key(public_key_hex: str) -> Ed25519PublicKey:
    """Load a verification-only key exported with ``SigningKeyPair.public_key_hex``."""
    try:
        return Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key_hex))
    except ValueError as e:
        raise InvalidKeyError(f"Invalid public key: {e}") from e


def issue_token(payload: TokenPayload, private_key: Ed25519PrivateKey) -> str:
    """Sign a payload into a token string."""
    claims = {
        "jti": str(payload.jti),
        "sub": str(payload.account_id),
        "aud": str(payload.device_id),
        "iat": payload.issued_at,
        "nbf": payload.not_before,
        "exp": payload.expires_at,
    }
    return jwt.encode(
        claims,
        private_key,
        algorithm=ALGORITHM,
        headers={TOKEN_TYPE_HEADER: str(payload.token_type)},
    )


def _parse_uuid_claim(claims: dict[str, Any], name: str) -> uuid.UUID:
    value = claims.get(name)
    if value is None:
        logger.info(f"Token rejected: failed to get '{name}'")
        raise MissingClaimError(name)
    if not isinstance(value, str):
        logger.info(f"Token rejected: failed to parse '{name}' (not a string)")
        raise MalformedClaimError(name, value)
    try:
        return uuid.UUID(value)
    except ValueError as e:
        logger.info(f"Token rejected: failed to parse '{name}': {e}")
        raise MalformedClaimError(name, value) from e


def _parse_time_claim(claims: dict[str, Any], name: str) -> datetime:
    value = claims.get(name)
    if value is None:
        logger.info(f"Token rejected: failed to get '{name}'")
        raise MissingClaimError(name)
    if isinstance(value, bool) or not isinstance(value, int | float):
        logger.info(f"Token rejected: failed to parse '{name}'")
        raise MalformedClaimError(name, value)
    try:
        return datetime.fromtimestamp(value, tz=UTC)
    except (OverflowError, OSError, ValueError) as e:
        logger.info(f"Token rejected: failed to parse '{name}': {e}")
        raise MalformedClaimError(name, value) from e


def _parse_token_type(header: dict[str, Any]) -> TokenType:
    value = header.get(TOKEN_TYPE_HEADER)
    if value is None:
        logger.info("Token rejected: failed to get token type")
        raise MissingClaimError(TOKEN_TYPE_HEADER)
    try:
        return TokenType(value)
    except ValueError as e:
        logger.info(f"Token rejected: unknown token type {value!r}")
        raise MalformedClaimError(TOKEN_TYPE_HEADER, value) from e


def verify_token(
    token: str,
    public_key: Ed25519PublicKey,
    expected_type: TokenType | None = None,
    *,
    leeway: float = 0,
    now: datetime | None = None,
) -> TokenPayload:
    """Verify a token and return its payload.

    Checks run in order: signature, not-before, current-time validity, then
    claim extraction (jti, aud, sub, iat, nbf, exp) and a final expiry check
    against ``now``. When ``expected_type`` is given the token type must match.

    Raises:
        TokenDecodeError: Bad signature, wrong algorithm or malformed token.
        TokenNotYetValidError: ``nbf``/``iat`` lies in the future.
        TokenExpiredError: ``exp`` has passed.
        MissingClaimError / MalformedClaimError: A claim is absent or unparseable.
        InvalidTokenTypeError: The token type differs from ``expected_type``.
    """
    try:
        decoded = jwt.decode_complete(
            token,
            public_key,
            algorithms=[ALGORITHM],
            options={"verify_aud": False},
            leeway=leeway,
        )
    except ExpiredSignatureError as e:
        logger.info("Token rejected: token has expired")
        raise TokenExpiredError() from e
    except ImmatureSignatureError as e:
        logger.info(f"Token rejected: not valid yet: {e}")
        raise TokenNotYetValidError() from e
    except InvalidSignatureError as e:
        logger.warning("Token rejected: signature verification failed")
        raise TokenDecodeError("token signature verification failed") from e
    except PyJWTError as e:
        logger.info(f"Token rejected: failed to parse token: {e}")
        raise TokenDecodeError() from e

    claims: dict[str, Any] = decoded["payload"]
    header: dict[str, Any] = decoded["header"]

    jti = _parse_uuid_claim(claims, "jti")
    device_id = _parse_uuid_claim(claims, "aud")
    account_id = _parse_uuid_claim(claims, "sub")

    issued_at = _parse_time_claim(claims, "iat")
    not_before = _parse_time_claim(claims, "nbf")
    expires_at = _parse_time_claim(claims, "exp")

    # The parser already enforced exp, but only against its own clock and leeway
    if expires_at <= (now or utcnow()):
        logger.info(f"Token rejected: token has expired (jti={jti})")
        raise TokenExpiredError()

    token_type = _parse_token_type(header)
    if expected_type is not None and token_type != expected_type:
        logger.info(f"Token rejected: expected {expected_type}, got {token_type} (jti={jti})")
        raise InvalidTokenTypeError()

    return TokenPayload(
        jti=jti,
        account_id=account_id,
        device_id=device_id,
        issued_at=issued_at,
        not_before=not_before,
        expires_at=expires_at,
        token_type=token_type,
    )


class TokenCodec:
    """Issues and verifies tokens with an injected keypair."""

    def __init__(self, keys: SigningKeyPair, *, leeway: float = 0, clock: Clock = utcnow):
        self.keys = keys
        self.leeway = leeway
        self.clock = clock

    def issue(self, payload: TokenPayload) -> str:
        return issue_token(payload, self.keys.private_key)

    def verify(self, token: str, expected_type: TokenType | None = None) -> TokenPayload:
        return verify_token(
            token,
            self.keys.public_key,
            expected_type,
            leeway=self.leeway,
            now=self.clock(),
        )

    def new_payload(
        self,
        account_id: uuid.UUID,
        device_id: uuid.UUID,
        token_type: TokenType,
        lifetime: timedelta,
    ) -> TokenPayload:
        return TokenPayload.new(account_id, device_id, token_type, lifetime, now=self.clock())
