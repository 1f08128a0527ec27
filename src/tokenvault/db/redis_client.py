"""Redis connection pool — backing store for the rate limiter.

Learn: Redis is optional. The pool is initialised in the app lifespan;
if it never comes up, get_redis() raises and the rate limiter lets
requests through unthrottled. Token state never lives here — liveness
is always answered by the database.
"""

from typing import Optional

import redis.asyncio as aioredis

from tokenvault.config import settings

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


async def init_redis() -> aioredis.Redis:
    """Initialize the Redis connection pool."""
    global _redis
    client = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    # Verify connection before publishing the pool
    await client.ping()
    _redis = client
    return _redis


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis
