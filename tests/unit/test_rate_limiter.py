"""Unit tests for the Lua rate limiter, run against fakeredis with Lua support."""

import asyncio

from src.ss_common.enums import Verdict
from src.ss_ingest.infrastructure.rate_limiter import RateLimiter

T0 = 1_700_000_000_000


async def _burst(limiter: RateLimiter, n: int, step_ms: int, user: str = "u1") -> list[Verdict]:
    return [await limiter.check("g1", user, T0 + i * step_ms) for i in range(n)]


class TestFloodJail:
    async def test_sixth_fast_call_triggers_jail_and_seventh_is_jailed(self, redis) -> None:
        limiter = RateLimiter(redis)

        verdicts = await _burst(limiter, 6, step_ms=100)
        seventh = await limiter.check("g1", "u1", T0 + 700)

        assert verdicts[0] == Verdict.ACCEPT
        assert verdicts[1:5] == [Verdict.COOLDOWN] * 4
        assert verdicts[5] == Verdict.TRIGGER_JAIL
        assert seventh == Verdict.JAILED

    async def test_jail_key_layout_and_window_cleared(self, redis) -> None:
        limiter = RateLimiter(redis)
        await _burst(limiter, 6, step_ms=10)

        assert await redis.exists("u:j:g1:u1") == 1
        assert await redis.pttl("u:j:g1:u1") > 0
        assert await redis.exists("s:t:g1:u1") == 0

    async def test_after_jail_expires_never_jailed(self, redis) -> None:
        limiter = RateLimiter(redis, jail_ttl_ms=50)
        await _burst(limiter, 6, step_ms=10)
        await asyncio.sleep(0.15)

        verdict = await limiter.check("g1", "u1", T0 + 10_000)

        assert verdict in (Verdict.ACCEPT, Verdict.COOLDOWN)

    async def test_slow_calls_never_jail(self, redis) -> None:
        limiter = RateLimiter(redis)
        verdicts = await _burst(limiter, 10, step_ms=1000)
        assert Verdict.TRIGGER_JAIL not in verdicts
        assert Verdict.JAILED not in verdicts

    async def test_window_is_trimmed(self, redis) -> None:
        limiter = RateLimiter(redis)
        await _burst(limiter, 9, step_ms=1000)
        assert await redis.llen("s:t:g1:u1") == 6


class TestCooldown:
    async def test_accept_then_cooldown(self, redis) -> None:
        limiter = RateLimiter(redis)
        assert await limiter.check("g1", "u1", T0) == Verdict.ACCEPT
        assert await limiter.check("g1", "u1", T0 + 5000) == Verdict.COOLDOWN
        ttl = await redis.pttl("s:c:g1:u1")
        assert 0 < ttl <= 30_000

    async def test_cooldown_expires(self, redis) -> None:
        limiter = RateLimiter(redis, cooldown_ttl_ms=50)
        assert await limiter.check("g1", "u1", T0) == Verdict.ACCEPT
        await asyncio.sleep(0.15)
        assert await limiter.check("g1", "u1", T0 + 5000) == Verdict.ACCEPT

    async def test_users_are_isolated(self, redis) -> None:
        limiter = RateLimiter(redis)
        assert await limiter.check("g1", "u1", T0) == Verdict.ACCEPT
        assert await limiter.check("g1", "u2", T0) == Verdict.ACCEPT
        assert await limiter.check("g2", "u1", T0) == Verdict.ACCEPT


class TestDuplicate:
    async def test_repeated_content_is_duplicate(self, redis) -> None:
        limiter = RateLimiter(redis)
        assert await limiter.check("g1", "u1", T0, content_hash="abc") == Verdict.ACCEPT
        assert await limiter.check("g1", "u1", T0 + 40_000, "abc") == Verdict.DUPLICATE
        assert await redis.get("s:h:g1:u1") == "abc"

    async def test_new_content_is_not_duplicate(self, redis) -> None:
        limiter = RateLimiter(redis, cooldown_ttl_ms=1)
        assert await limiter.check("g1", "u1", T0, content_hash="abc") == Verdict.ACCEPT
        await asyncio.sleep(0.01)
        assert await limiter.check("g1", "u1", T0 + 40_000, "xyz") == Verdict.ACCEPT

    async def test_jail_checked_before_duplicate(self, redis) -> None:
        limiter = RateLimiter(redis)
        await redis.set("u:j:g1:u1", "1", px=10_000)
        assert await limiter.check("g1", "u1", T0, content_hash="abc") == Verdict.JAILED
