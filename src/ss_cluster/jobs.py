"""JobScheduler — at-most-one-runner periodic jobs across worker replicas.

Every replica ticks on the same interval and races for `job:{name}` with
SET NX PX. The winner runs the job; the others skip that tick silently.
The lock is never released: it expires on its own shortly before the next
tick, which also keeps a fast replica from running the job twice in one
interval. A failing job is logged and the lock is left to expire.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import redis.asyncio as aioredis

from src.ss_common.keys import job_key as namespaced_job_key
from src.ss_common.redis_client import get_redis

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Awaitable[Any]]


class JobScheduler:
    def __init__(self, redis: aioredis.Redis | None = None, owner: str = "worker") -> None:
        self._redis = redis
        self._owner = owner

    async def _client(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = await get_redis()
        return self._redis

    async def run_with_lock(self, job_key: str, ttl_ms: int, func: JobFunc) -> bool:
        """Run func if this caller wins the lock. Returns True when it ran."""
        key = namespaced_job_key(job_key)
        redis = await self._client()
        acquired = await redis.set(key, self._owner, nx=True, px=ttl_ms)
        if not acquired:
            return False

        logger.info("Running job %s", key)
        try:
            await func()
        except Exception:
            logger.exception("Job %s failed", key)
        return True

    async def run_periodically(
        self,
        job_key: str,
        interval_s: float,
        ttl_ms: int,
        func: JobFunc,
        stop: asyncio.Event | None = None,
    ) -> None:
        """Tick forever (or until `stop` is set), racing for the lock each time."""
        if ttl_ms >= interval_s * 1000:
            raise ValueError(
                f"lock TTL ({ttl_ms}ms) must be shorter than the interval ({interval_s}s)"
            )
        stop = stop or asyncio.Event()
        while not stop.is_set():
            try:
                await self.run_with_lock(job_key, ttl_ms, func)
            except (aioredis.ConnectionError, aioredis.TimeoutError):
                logger.warning("Job %s skipped, cache unreachable", job_key)
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval_s)
            except asyncio.TimeoutError:
                pass
