"""VoiceTracker — turns voice-channel sessions into VOICE_MINUTE events.

    voice:start:{guild}:{user}   session start, epoch ms (set once per session)
    voice:meta:{guild}:{user}    display name captured at join, 24h TTL

A session shorter than one whole minute produces nothing; a longer one
produces a single event worth 2 points per full minute.
"""

import logging

import redis.asyncio as aioredis

from config.settings import settings
from src.ss_common.datetime_utils import epoch_ms
from src.ss_common.keys import voice_meta_key, voice_start_key
from src.ss_common.redis_client import get_redis
from src.ss_ingest.application.schemas import VoiceStopResponse
from src.ss_ingest.application.service import IngestionService
from src.ss_ingest.domain.events import VoiceMinuteEvent

logger = logging.getLogger(__name__)

POINTS_PER_MINUTE = 2
_MS_PER_MINUTE = 60_000


class VoiceTracker:
    def __init__(
        self,
        ingestion: IngestionService | None = None,
        redis: aioredis.Redis | None = None,
        meta_ttl_s: int = settings.DISPLAY_NAME_TTL_S,
    ) -> None:
        self._ingestion = ingestion or IngestionService()
        self._redis = redis
        self._meta_ttl_s = meta_ttl_s

    async def _client(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = await get_redis()
        return self._redis

    async def start(
        self,
        guild_id: str,
        platform_user_id: str,
        display_name: str | None = None,
        now_ms: int | None = None,
    ) -> None:
        """Record a join. A second join without a leave keeps the first start."""
        started = now_ms if now_ms is not None else epoch_ms()
        redis = await self._client()
        async with redis.pipeline(transaction=True) as pipe:
            pipe.set(voice_start_key(guild_id, platform_user_id), started, nx=True)
            if display_name:
                pipe.set(
                    voice_meta_key(guild_id, platform_user_id), display_name, ex=self._meta_ttl_s
                )
            await pipe.execute()

    async def stop(
        self, guild_id: str, platform_user_id: str, now_ms: int | None = None
    ) -> VoiceStopResponse:
        redis = await self._client()
        start_key = voice_start_key(guild_id, platform_user_id)
        meta_key = voice_meta_key(guild_id, platform_user_id)
        async with redis.pipeline(transaction=True) as pipe:
            pipe.mget(start_key, meta_key)
            pipe.delete(start_key, meta_key)
            (started, display_name), _ = await pipe.execute()

        if started is None:
            return VoiceStopResponse(minutes=0, points=0, enqueued=False)
        try:
            start_ms = int(started)
        except ValueError:
            logger.warning("Corrupt voice start for %s:%s: %r", guild_id, platform_user_id, started)
            return VoiceStopResponse(minutes=0, points=0, enqueued=False)

        ended = now_ms if now_ms is not None else epoch_ms()
        minutes = (ended - start_ms) // _MS_PER_MINUTE
        if minutes < 1:
            return VoiceStopResponse(minutes=0, points=0, enqueued=False)

        points = minutes * POINTS_PER_MINUTE
        event = VoiceMinuteEvent(
            guild_id=guild_id,
            platform_user_id=platform_user_id,
            magnitude=points,
            display_name=display_name,
        )
        enqueued = await self._ingestion.enqueue(event)
        return VoiceStopResponse(minutes=minutes, points=points, enqueued=enqueued)

    async def discard(self, guild_id: str, platform_user_id: str) -> bool:
        """Drop an open session without crediting it (member left the guild)."""
        redis = await self._client()
        removed = await redis.delete(
            voice_start_key(guild_id, platform_user_id),
            voice_meta_key(guild_id, platform_user_id),
        )
        return removed > 0

    async def purge_guild(self, guild_id: str) -> int:
        """Drop every open session for a disconnected guild."""
        redis = await self._client()
        removed = 0
        for pattern in (voice_start_key(guild_id, "*"), voice_meta_key(guild_id, "*")):
            keys = [k async for k in redis.scan_iter(match=pattern, count=100)]
            if keys:
                removed += await redis.delete(*keys)
        return removed
