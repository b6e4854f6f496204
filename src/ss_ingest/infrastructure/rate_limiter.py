"""RateLimiter — per-user admission control in a single atomic Lua script.

Keys (all self-expiring):
    u:j:{guild}:{user}   jail flag
    s:h:{guild}:{user}   last content hash
    s:t:{guild}:{user}   sliding window of the last N event timestamps (ms)
    s:c:{guild}:{user}   reward cooldown flag

Decision order inside the script:
    1. jailed                                  -> JAILED
    2. same content hash as the previous event -> DUPLICATE
    3. push timestamp, keep the last N, refresh TTL
    4. N timestamps spanning < flood threshold -> jail, clear window, TRIGGER_JAIL
    5. cooldown active                         -> COOLDOWN
       otherwise start cooldown                -> ACCEPT

Running everything in one script means two concurrent calls for the same user
can never both read a half-updated window.
"""

import redis.asyncio as aioredis
from redis.commands.core import AsyncScript

from config.settings import settings
from src.ss_common.enums import Verdict
from src.ss_common.keys import content_hash_key, cooldown_key, jail_key, spam_window_key
from src.ss_common.redis_client import get_redis

_CHECK_LUA = """
if redis.call('EXISTS', KEYS[1]) == 1 then
    return 'JAILED'
end

local content_hash = ARGV[8]
if content_hash ~= '' then
    if redis.call('GET', KEYS[2]) == content_hash then
        return 'DUPLICATE'
    end
    redis.call('SET', KEYS[2], content_hash, 'PX', ARGV[7])
end

local now = tonumber(ARGV[1])
local size = tonumber(ARGV[2])
redis.call('RPUSH', KEYS[3], ARGV[1])
redis.call('LTRIM', KEYS[3], -size, -1)
redis.call('PEXPIRE', KEYS[3], ARGV[4])

if redis.call('LLEN', KEYS[3]) >= size then
    local oldest = tonumber(redis.call('LINDEX', KEYS[3], 0))
    if now - oldest < tonumber(ARGV[3]) then
        redis.call('SET', KEYS[1], '1', 'PX', ARGV[5])
        redis.call('DEL', KEYS[3])
        return 'TRIGGER_JAIL'
    end
end

if redis.call('EXISTS', KEYS[4]) == 1 then
    return 'COOLDOWN'
end
redis.call('SET', KEYS[4], ARGV[1], 'PX', ARGV[6])
return 'ACCEPT'
"""


class RateLimiter:
    def __init__(
        self,
        redis: aioredis.Redis | None = None,
        window_size: int = settings.RATE_LIMIT_WINDOW_SIZE,
        flood_threshold_ms: int = settings.RATE_LIMIT_FLOOD_THRESHOLD_MS,
        window_ttl_ms: int = settings.RATE_LIMIT_WINDOW_TTL_MS,
        jail_ttl_ms: int = settings.RATE_LIMIT_JAIL_TTL_MS,
        cooldown_ttl_ms: int = settings.RATE_LIMIT_COOLDOWN_TTL_MS,
        duplicate_ttl_ms: int = settings.RATE_LIMIT_DUPLICATE_TTL_MS,
    ) -> None:
        self._redis = redis
        self._script: AsyncScript | None = None
        self._window_size = window_size
        self._flood_threshold_ms = flood_threshold_ms
        self._window_ttl_ms = window_ttl_ms
        self._jail_ttl_ms = jail_ttl_ms
        self._cooldown_ttl_ms = cooldown_ttl_ms
        self._duplicate_ttl_ms = duplicate_ttl_ms

    async def _check_script(self) -> AsyncScript:
        if self._script is None:
            if self._redis is None:
                self._redis = await get_redis()
            self._script = self._redis.register_script(_CHECK_LUA)
        return self._script

    async def check(
        self,
        guild_id: str,
        platform_user_id: str,
        now_ms: int,
        content_hash: str | None = None,
    ) -> Verdict:
        script = await self._check_script()
        result = await script(
            keys=[
                jail_key(guild_id, platform_user_id),
                content_hash_key(guild_id, platform_user_id),
                spam_window_key(guild_id, platform_user_id),
                cooldown_key(guild_id, platform_user_id),
            ],
            args=[
                now_ms,
                self._window_size,
                self._flood_threshold_ms,
                self._window_ttl_ms,
                self._jail_ttl_ms,
                self._cooldown_ttl_ms,
                self._duplicate_ttl_ms,
                content_hash or "",
            ],
        )
        if isinstance(result, bytes):
            result = result.decode()
        return Verdict(result)
