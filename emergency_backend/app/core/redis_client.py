"""
Redis connection for the token revocation lists.

Callers go through get_redis() instead of importing `redis_client`
directly, so the instance can be replaced (tests swap in an in-memory
stand-in).
"""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError
from emergency_backend.app.core.config import settings

logger = logging.getLogger(__name__)


redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
    health_check_interval=30,
)


async def get_redis():
    """Return the shared client; also usable as a FastAPI dependency."""
    return redis_client


async def ping_redis() -> bool:
    """Report whether Redis answers; used by the health endpoint."""
    try:
        return bool(await redis_client.ping())
    except RedisError as e:
        logger.warning("Redis ping failed: %s", e)
        return False


async def close_redis() -> None:
    await redis_client.aclose()
