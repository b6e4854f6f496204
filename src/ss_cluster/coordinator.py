"""ClusterCoordinator — exclusive ownership of one of C cluster slots.

    cluster:slot:{i}   value = this process's identity, PX = slot TTL

claim() walks the slots and takes the first free one with SET NX PX; when all
are taken it backs off exponentially and retries forever. While owned, a
heartbeat refreshes the TTL through a compare-and-pexpire script. If the
value no longer matches, another process has the slot and this one must stop
serving its shards at once: the loss is logged at CRITICAL and the loss
handler runs, which by default exits the process. The same happens when the
cache stays unreachable until the TTL is about to lapse, and when the
heartbeat task dies on an unexpected error.

release() deletes the slot only while still owned.
"""

import asyncio
import logging
import os
import socket
import time
import uuid
from collections.abc import Callable

import redis.asyncio as aioredis

from config.settings import settings
from src.ss_cluster.shards import ShardRange, shard_range_for_slot
from src.ss_common.errors import SlotLostError
from src.ss_common.keys import cluster_slot_key
from src.ss_common.redis_client import get_redis

logger = logging.getLogger(__name__)

_REFRESH_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('PEXPIRE', KEYS[1], ARGV[2])
end
return 0
"""

_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""

LossHandler = Callable[[SlotLostError], None]


def _exit_process(exc: SlotLostError) -> None:
    os._exit(1)


def default_identity() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


class ClusterCoordinator:
    def __init__(
        self,
        redis: aioredis.Redis | None = None,
        identity: str | None = None,
        cluster_count: int = settings.CLUSTER_COUNT,
        total_shards: int = settings.TOTAL_SHARDS,
        slot_ttl_ms: int = settings.CLUSTER_SLOT_TTL_MS,
        heartbeat_s: float = settings.CLUSTER_HEARTBEAT_S,
        backoff_s: float = settings.CLUSTER_CLAIM_BACKOFF_S,
        backoff_max_s: float = settings.CLUSTER_CLAIM_BACKOFF_MAX_S,
        on_lost: LossHandler = _exit_process,
    ) -> None:
        if heartbeat_s * 1000 >= slot_ttl_ms:
            raise ValueError("heartbeat interval must be shorter than the slot TTL")
        self._redis = redis
        self.identity = identity or default_identity()
        self._cluster_count = cluster_count
        self._total_shards = total_shards
        self._slot_ttl_ms = slot_ttl_ms
        self._heartbeat_s = heartbeat_s
        self._backoff_s = backoff_s
        self._backoff_max_s = backoff_max_s
        self._on_lost = on_lost
        self._slot_id: int | None = None
        self._heartbeat_task: asyncio.Task[None] | None = None
        self._last_renewed = 0.0

    @property
    def slot_id(self) -> int | None:
        return self._slot_id

    @property
    def shard_range(self) -> ShardRange | None:
        if self._slot_id is None:
            return None
        return shard_range_for_slot(self._slot_id, self._total_shards, self._cluster_count)

    async def _client(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = await get_redis()
        return self._redis

    async def try_claim(self) -> int | None:
        """One pass over all slots. Returns the claimed slot or None."""
        redis = await self._client()
        for slot_id in range(self._cluster_count):
            acquired = await redis.set(
                cluster_slot_key(slot_id), self.identity, nx=True, px=self._slot_ttl_ms
            )
            if acquired:
                self._last_renewed = time.monotonic()
                self._slot_id = slot_id
                logger.info(
                    "Claimed cluster slot %d (%s) as %s",
                    slot_id, self.shard_range, self.identity,
                )
                return slot_id
        return None

    async def claim(self) -> int:
        """Block until a slot is owned, backing off while all are taken."""
        delay = self._backoff_s
        while True:
            slot_id = await self.try_claim()
            if slot_id is not None:
                return slot_id
            logger.warning(
                "All %d cluster slots taken, retrying in %.1fs", self._cluster_count, delay
            )
            await asyncio.sleep(delay)
            delay = min(delay * 2, self._backoff_max_s)

    async def heartbeat(self) -> bool:
        """Refresh the slot TTL. False (after invoking the loss handler) if lost."""
        if self._slot_id is None:
            return False
        redis = await self._client()
        refreshed = await redis.eval(
            _REFRESH_LUA, 1, cluster_slot_key(self._slot_id), self.identity, self._slot_ttl_ms
        )
        if int(refreshed) == 1:
            self._last_renewed = time.monotonic()
            return True

        self._declare_lost("slot owned by another process")
        return False

    def _declare_lost(self, reason: str) -> None:
        if self._slot_id is None:
            return
        exc = SlotLostError(self._slot_id)
        logger.critical(
            "%s (identity %s, %s), shutting down", exc.message, self.identity, reason
        )
        self._slot_id = None
        self._on_lost(exc)

    def _renewal_overdue(self) -> bool:
        # Give up one beat before the TTL lapses, so a new owner never overlaps.
        elapsed_ms = (time.monotonic() - self._last_renewed) * 1000
        return elapsed_ms + self._heartbeat_s * 1000 >= self._slot_ttl_ms

    def start_heartbeat(self) -> None:
        if self._heartbeat_task is None or self._heartbeat_task.done():
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
            self._heartbeat_task.add_done_callback(self._on_heartbeat_done)

    def _on_heartbeat_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Heartbeat task crashed", exc_info=exc)
            self._declare_lost(f"heartbeat crashed: {exc!r}")

    async def _heartbeat_loop(self) -> None:
        while self._slot_id is not None:
            await asyncio.sleep(self._heartbeat_s)
            try:
                if not await self.heartbeat():
                    return
            except (aioredis.ConnectionError, aioredis.TimeoutError):
                if self._renewal_overdue():
                    self._declare_lost("renewal failed until the TTL ran out")
                    return
                logger.warning("Heartbeat for slot %s failed, cache unreachable", self._slot_id)

    async def release(self) -> bool:
        """Stop the heartbeat and delete the slot if this process still owns it."""
        task, self._heartbeat_task = self._heartbeat_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._slot_id is None:
            return False
        redis = await self._client()
        deleted = await redis.eval(
            _RELEASE_LUA, 1, cluster_slot_key(self._slot_id), self.identity
        )
        logger.info("Released cluster slot %d (deleted=%s)", self._slot_id, bool(deleted))
        self._slot_id = None
        return bool(deleted)
