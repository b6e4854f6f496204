"""Redis client factories.

Two pools, mirroring the two roles Redis plays here:
  - cache: rate-limit windows, jail flags, leaderboards, display names,
    cluster slots and job locks. Keys may be evicted under memory pressure.
  - queue: the activity buffer. Holds not-yet-scored events and must not
    drop data, so it can point at a separately configured instance.
"""

import redis.asyncio as aioredis

from config.settings import settings

_redis_pool: aioredis.Redis | None = None
_queue_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """Get or create the cache Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
    return _redis_pool


async def get_queue_redis() -> aioredis.Redis:
    """Get or create the queue Redis connection pool."""
    global _queue_pool  # noqa: PLW0603
    if _queue_pool is None:
        _queue_pool = aioredis.from_url(
            settings.queue_redis_url,
            decode_responses=True,
        )
    return _queue_pool


async def close_redis() -> None:
    """Close both Redis connection pools."""
    global _redis_pool, _queue_pool  # noqa: PLW0603
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None
    if _queue_pool is not None:
        await _queue_pool.aclose()
        _queue_pool = None
