"""Argon2id password hashing.

Encoded hashes use the PHC string format produced by argon2-cffi:

    $argon2id$v=19$m=65536,t=3,p=4$<base64 salt>$<base64 hash>

The string carries every parameter needed to re-derive the hash, so
verification never depends on the hasher's current configuration.
"""

import logging
import secrets

from argon2 import PasswordHasher as _Argon2Hasher
from argon2 import Type, extract_parameters
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from argon2.low_level import ARGON2_VERSION

from tokengate.core.config import Settings
from tokengate.services.errors import (
    IncompatibleArgon2VersionError,
    InvalidEncodedHashError,
    InvalidSaltLengthError,
)

logger = logging.getLogger(__name__)


class PasswordHasher:
    """Derives and verifies salted Argon2id password hashes."""

    def __init__(
        self,
        time_cost: int = 3,
        memory_cost: int = 65536,
        parallelism: int = 4,
        hash_len: int = 32,
        salt_len: int = 16,
    ):
        self.time_cost = time_cost
        self.memory_cost = memory_cost
        self.parallelism = parallelism
        self.hash_len = hash_len
        self.salt_len = salt_len
        self._dummy_hash: str | None = None
        self._hasher = _Argon2Hasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=hash_len,
            salt_len=salt_len,
            type=Type.ID,
        )

    @classmethod
    def from_settings(cls, config: Settings) -> "PasswordHasher":
        return cls(
            time_cost=config.password_hash_time_cost,
            memory_cost=config.password_hash_memory_cost,
            parallelism=config.password_hash_parallelism,
            hash_len=config.password_hash_length,
            salt_len=config.password_salt_length,
        )

    def hash(self, password: str, salt: bytes | None = None) -> str:
        """Hash a password, generating a random salt unless one is supplied.

        Raises:
            InvalidSaltLengthError: If a non-empty salt has the wrong length.
        """
        if salt and len(salt) != self.salt_len:
            raise InvalidSaltLengthError(self.salt_len, len(salt))
        if not salt:
            salt = secrets.token_bytes(self.salt_len)
        return self._hasher.hash(password, salt=salt)

    def verify(self, password: str, encoded_hash: str) -> bool:
        """Check a password against an encoded hash.

        A mismatch returns False. A stored hash that cannot be decoded raises,
        since that indicates corrupt data rather than a wrong password.

        Raises:
            InvalidEncodedHashError: Wrong field count, bad parameters or undecodable base64.
            IncompatibleArgon2VersionError: The hash was made with another Argon2 version.
        """
        try:
            params = extract_parameters(encoded_hash)
        except InvalidHashError as e:
            raise InvalidEncodedHashError("invalid encoded hash") from e

        if params.type is not Type.ID:
            raise InvalidEncodedHashError(f"unsupported argon2 variant: {params.type.name}")
        if params.version != ARGON2_VERSION:
            raise IncompatibleArgon2VersionError(
                f"incompatible argon2 version: expected {ARGON2_VERSION}, got {params.version}"
            )

        try:
            return self._hasher.verify(encoded_hash, password)
        except VerifyMismatchError:
            return False
        except (InvalidHashError, VerificationError) as e:
            logger.warning(f"Stored password hash could not be decoded: {e}")
            raise InvalidEncodedHashError("invalid encoded hash") from e

    def verify_dummy(self, password: str) -> None:
        """Spend one verification's worth of work against a throwaway hash.

        Used when there is no stored hash to check, so the response time does
        not reveal whether an account exists.
        """
        if self._dummy_hash is None:
            self._dummy_hash = self.hash("dummy-password-for-timing")
        self.verify(password, self._dummy_hash)
