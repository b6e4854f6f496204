"""LeaderboardStore — per-guild ranking in a Redis sorted set.

Key layout:
    leaderboard:networth:{guild_id}   ZSET  member=participant_id score=net worth
    user:{participant_id}:username    STR   display name, 24h TTL

Scores are floats (Redis has no decimal type); net worth is converted back to
a cent-quantized Decimal on read. Only the net worth ledger writes scores.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

import redis.asyncio as aioredis

from config.settings import settings
from src.ss_common.keys import display_name_key, leaderboard_key
from src.ss_common.money import money_from_score
from src.ss_common.redis_client import get_redis
from src.ss_market.domain.models import LeaderboardEntry


@dataclass
class RankedEntry:
    rank: int
    participant_id: str
    net_worth: Decimal
    display_name: str | None  # None when the cached name has expired


class LeaderboardStore:
    def __init__(
        self,
        redis: aioredis.Redis | None = None,
        name_ttl_s: int = settings.DISPLAY_NAME_TTL_S,
    ) -> None:
        self._redis = redis
        self._name_ttl_s = name_ttl_s

    async def _client(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = await get_redis()
        return self._redis

    async def upsert(self, entries: Iterable[LeaderboardEntry]) -> int:
        """Write scores and refresh cached display names in one round trip."""
        entries = list(entries)
        if not entries:
            return 0
        redis = await self._client()
        async with redis.pipeline(transaction=False) as pipe:
            for e in entries:
                pipe.zadd(leaderboard_key(e.guild_id), {e.participant_id: float(e.net_worth)})
                pipe.set(display_name_key(e.participant_id), e.display_name, ex=self._name_ttl_s)
            await pipe.execute()
        return len(entries)

    async def top(self, guild_id: str, limit: int) -> list[RankedEntry]:
        if limit <= 0:
            return []
        redis = await self._client()
        rows = await redis.zrevrange(leaderboard_key(guild_id), 0, limit - 1, withscores=True)
        if not rows:
            return []
        names = await redis.mget([display_name_key(pid) for pid, _ in rows])
        return [
            RankedEntry(
                rank=i + 1,
                participant_id=pid,
                net_worth=money_from_score(score),
                display_name=name,
            )
            for i, ((pid, score), name) in enumerate(zip(rows, names))
        ]

    async def score(self, guild_id: str, participant_id: str) -> Decimal | None:
        redis = await self._client()
        value = await redis.zscore(leaderboard_key(guild_id), participant_id)
        return None if value is None else money_from_score(value)

    async def cache_names(self, names: dict[str, str]) -> None:
        if not names:
            return
        redis = await self._client()
        async with redis.pipeline(transaction=False) as pipe:
            for pid, name in names.items():
                pipe.set(display_name_key(pid), name, ex=self._name_ttl_s)
            await pipe.execute()

    async def remove(self, guild_id: str, participant_id: str) -> None:
        redis = await self._client()
        async with redis.pipeline(transaction=False) as pipe:
            pipe.zrem(leaderboard_key(guild_id), participant_id)
            pipe.delete(display_name_key(participant_id))
            await pipe.execute()

    async def drop_guild(self, guild_id: str, participant_ids: Iterable[str]) -> None:
        redis = await self._client()
        name_keys = [display_name_key(pid) for pid in participant_ids]
        async with redis.pipeline(transaction=False) as pipe:
            pipe.delete(leaderboard_key(guild_id))
            if name_keys:
                pipe.delete(*name_keys)
            await pipe.execute()
