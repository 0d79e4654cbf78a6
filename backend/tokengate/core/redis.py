"""Redis client factory for the revocation cache."""

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from tokengate.core.config import Settings
from tokengate.core.logging import get_logger

logger = get_logger("redis")


def create_redis_client(config: Settings) -> aioredis.Redis:
    """Build an asyncio Redis client from settings.

    The connection is opened lazily on the first command. Socket timeouts bound
    every cache round-trip so a stalled cache fails the request instead of
    hanging it.
    """
    if not config.redis_url:
        raise ValueError("REDIS_URL is not configured")
    return aioredis.from_url(
        config.redis_url,
        decode_responses=True,
        socket_timeout=config.redis_socket_timeout,
        socket_connect_timeout=config.redis_socket_timeout,
    )


async def check_redis_connection(client: aioredis.Redis) -> bool:
    """Check if the cache is reachable."""
    try:
        return bool(await client.ping())
    except (RedisError, OSError) as e:
        logger.warning(f"Redis connection check failed: {e}")
        return False
