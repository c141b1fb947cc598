"""
Redis connection for the ledger read cache.

The cache is optional: the console keeps working against the ledger service
when Redis is down, so callers get a reachability flag instead of an error.
"""

import logging

import redis.asyncio as redis
from backend.app.core.config import settings

logger = logging.getLogger(__name__)

redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def get_redis():
    """FastAPI dependency returning the shared Redis client."""
    return redis_client


async def ping_redis(client=None) -> bool:
    """
    Check whether the cache backend answers.

    Args:
        client: Redis client to ping; defaults to the shared one

    Returns:
        True if Redis answered the ping, False otherwise
    """
    client = client if client is not None else redis_client
    try:
        return bool(await client.ping())
    except redis.RedisError as e:
        logger.warning("Redis ping failed: %s", e)
        return False


async def close_redis() -> None:
    await redis_client.aclose()
