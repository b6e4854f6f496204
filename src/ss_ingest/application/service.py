"""IngestionService — front door for platform activity.

Every inbound event (messages and reactions) passes through the rate
limiter and is enqueued only on ACCEPT. VOICE_MINUTE events never arrive
here: VoiceTracker builds them from its own session keys and calls
enqueue() directly. A failed enqueue loses that one event: it is logged and
the verdict is still returned.
"""

import logging

from redis.exceptions import RedisError

from src.ss_common.enums import Verdict
from src.ss_ingest.application.schemas import IngestResponse
from src.ss_ingest.domain.events import MessageEvent, ReactionEvent, VoiceMinuteEvent
from src.ss_ingest.infrastructure.event_queue import EventQueue
from src.ss_ingest.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class IngestionService:
    def __init__(
        self,
        limiter: RateLimiter | None = None,
        queue: EventQueue | None = None,
    ) -> None:
        self._limiter = limiter or RateLimiter()
        self._queue = queue or EventQueue()

    async def submit(self, event: MessageEvent | ReactionEvent) -> IngestResponse:
        verdict = await self._limiter.check(
            event.guild_id, event.platform_user_id, event.enqueued_at, event.content_hash
        )
        if verdict == Verdict.TRIGGER_JAIL:
            logger.warning(
                "Flood detected, jailing %s in guild %s",
                event.platform_user_id, event.guild_id,
            )

        if verdict != Verdict.ACCEPT:
            return IngestResponse(verdict=verdict, enqueued=False)
        return IngestResponse(verdict=verdict, enqueued=await self.enqueue(event))

    async def enqueue(self, event: MessageEvent | VoiceMinuteEvent | ReactionEvent) -> bool:
        try:
            await self._queue.enqueue(event)
        except RedisError:
            logger.exception(
                "Dropped %s event for %s:%s, queue unavailable",
                event.kind, event.guild_id, event.platform_user_id,
            )
            return False
        return True
