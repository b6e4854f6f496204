"""EventQueue — FIFO buffer of JSON-encoded activity events.

A single Redis list (`activity_buffer`) on the queue Redis. Producers RPUSH;
the aggregator pops a batch from the head and, on failure, pushes the raw
batch back onto the head in its original order. Delivery is at-least-once.
"""

import redis.asyncio as aioredis

from src.ss_common.keys import ACTIVITY_BUFFER_KEY
from src.ss_common.redis_client import get_queue_redis
from src.ss_ingest.domain.events import MessageEvent, ReactionEvent, VoiceMinuteEvent, encode_event


class EventQueue:
    def __init__(
        self, redis: aioredis.Redis | None = None, key: str = ACTIVITY_BUFFER_KEY
    ) -> None:
        self._redis = redis
        self._key = key

    async def _client(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = await get_queue_redis()
        return self._redis

    async def enqueue(self, event: MessageEvent | VoiceMinuteEvent | ReactionEvent) -> int:
        redis = await self._client()
        return int(await redis.rpush(self._key, encode_event(event)))

    async def drain_batch(self, max_count: int) -> list[str]:
        """Pop up to max_count items from the head (needs Redis >= 6.2)."""
        if max_count <= 0:
            return []
        redis = await self._client()
        items = await redis.lpop(self._key, max_count)
        if not items:
            return []
        if isinstance(items, (str, bytes)):
            items = [items]
        return [i.decode() if isinstance(i, bytes) else i for i in items]

    async def requeue_front(self, raw_items: list[str]) -> None:
        """Put a drained batch back at the head, preserving its order.

        LPUSH inserts each value at the head in turn, so the batch is pushed
        reversed to come out in the original order.
        """
        if not raw_items:
            return
        redis = await self._client()
        await redis.lpush(self._key, *reversed(raw_items))

    async def pending(self) -> int:
        redis = await self._client()
        return int(await redis.llen(self._key))
