"""Token revocation (blacklist) storage.

A revoked token id is stored until the token's own expiry. After that the
entry may disappear: the token fails time-bound verification anyway.
"""

import logging
import math
import threading
import time
from datetime import datetime
from typing import Protocol
from uuid import UUID

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from tokengate.services.errors import RevocationStoreError
from tokengate.services.tokens import utcnow

logger = logging.getLogger(__name__)

REVOKED_MARKER = "blacklisted"

# Redis rejects non-positive expiry values
MIN_TTL_SECONDS = 1


def ttl_seconds(expires_at: datetime, now: datetime | None = None) -> int:
    """Whole seconds until ``expires_at``, rounded up and clamped to MIN_TTL_SECONDS.

    Rounding up keeps the entry alive at least as long as the token itself.
    """
    remaining = (expires_at - (now or utcnow())).total_seconds()
    return max(MIN_TTL_SECONDS, math.ceil(remaining))


class RevocationStore(Protocol):
    """Records revoked token ids and answers membership queries."""

    async def revoke(self, token_id: UUID | str, expires_at: datetime) -> None: ...

    async def is_revoked(self, token_id: UUID | str) -> bool: ...


class RedisRevocationStore:
    """Revocation store backed by a Redis-compatible cache.

    Uses only single-key ``SET key value EX ttl`` and ``GET key``; the client
    handles its own connection pooling, so no caller-side locking is needed.
    """

    def __init__(self, client: aioredis.Redis, key_prefix: str = "tokengate:revoked:"):
        self.client = client
        self.key_prefix = key_prefix

    def _key(self, token_id: UUID | str) -> str:
        return f"{self.key_prefix}{token_id}"

    async def revoke(self, token_id: UUID | str, expires_at: datetime) -> None:
        ttl = ttl_seconds(expires_at)
        try:
            await self.client.set(self._key(token_id), REVOKED_MARKER, ex=ttl)
        except RedisError as e:
            logger.error(f"Failed to revoke token {token_id}: {e}")
            raise RevocationStoreError(f"failed to write revocation entry: {e}") from e
        logger.debug(f"Revoked token {token_id} for {ttl}s")

    async def is_revoked(self, token_id: UUID | str) -> bool:
        try:
            value = await self.client.get(self._key(token_id))
        except RedisError as e:
            logger.error(f"Failed to check revocation for token {token_id}: {e}")
            raise RevocationStoreError(f"failed to read revocation entry: {e}") from e
        # A missing key is the common, non-revoked case
        if value is None:
            return False
        if isinstance(value, bytes):
            value = value.decode()
        return value == REVOKED_MARKER


class InMemoryRevocationStore:
    """Process-local revocation store for development and tests.

    Entries are invisible to other workers and lost on restart; use
    RedisRevocationStore whenever more than one process serves requests.
    """

    def __init__(self, clock=time.time):
        self._entries: dict[str, float] = {}  # token id -> expiry timestamp
        self._lock = threading.Lock()
        self._clock = clock

    async def revoke(self, token_id: UUID | str, expires_at: datetime) -> None:
        # Same clamping as Redis so both stores expire entries identically
        expiry = self._clock() + ttl_seconds(expires_at)
        with self._lock:
            self._entries[str(token_id)] = expiry

    async def is_revoked(self, token_id: UUID | str) -> bool:
        key = str(token_id)
        with self._lock:
            expiry = self._entries.get(key)
            if expiry is None:
                return False
            if self._clock() >= expiry:
                del self._entries[key]
                return False
            return True

    def cleanup_expired(self) -> int:
        """Remove expired entries. Returns count removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, expiry in self._entries.items() if now >= expiry]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
