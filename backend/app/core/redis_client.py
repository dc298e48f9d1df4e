"""
Redis client for the pricing snapshot cache.

The cache is optional: with pricing_cache_ttl_seconds = 0 the dependency
yields None and every quote reads the database.
"""

from typing import Optional

import redis.asyncio as redis
from backend.app.core.config import settings


redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def get_redis() -> Optional[redis.Redis]:
    """FastAPI dependency: the shared client, or None when caching is disabled."""
    if settings.pricing_cache_ttl_seconds <= 0:
        return None
    return redis_client


async def ping_redis() -> Optional[bool]:
    """
    Returns:
        None if caching is disabled, else whether Redis answered.
    """
    if settings.pricing_cache_ttl_seconds <= 0:
        return None
    try:
        return await redis_client.ping()
    except redis.RedisError:
        return False


async def close_redis() -> None:
    await redis_client.aclose()
