"""
Redis connection management.
Handles the shared async Redis client and store creation.
"""

import logging

from redis.asyncio import Redis

from src.config import get_settings
from src.store.redis import RedisDelayedStore

logger = logging.getLogger(__name__)

# Global client instance
_redis: Redis | None = None


def get_redis() -> Redis:
    """
    Get or create the async Redis client.

    Returns:
        Redis: The shared client, decoding responses to str.
    """
    global _redis
    if _redis is None:
        settings = get_settings()
        _redis = Redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_timeout=settings.redis_socket_timeout_seconds,
        )
    return _redis


def get_store() -> RedisDelayedStore:
    """
    Create a delayed store over the shared client.

    Returns:
        RedisDelayedStore: Store using the configured namespace.
    """
    settings = get_settings()
    return RedisDelayedStore(get_redis(), namespace=settings.redis_namespace)


async def init_redis() -> None:
    """
    Initialize the Redis connection.
    Should be called on application startup.

    Raises:
        redis.exceptions.ConnectionError: If Redis is unreachable.
    """
    client = get_redis()
    await client.ping()
    logger.info("Redis connection initialized")


async def close_redis() -> None:
    """
    Close the Redis connection.
    Should be called on application shutdown.
    """
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None
        logger.info("Redis connection closed")
