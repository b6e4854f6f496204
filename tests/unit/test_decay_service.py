"""Unit tests for DecayService sweeps."""

from datetime import timedelta
from decimal import Decimal

import pytest

from src.ss_common.datetime_utils import utc_now
from src.ss_leaderboard.infrastructure.store import LeaderboardStore
from src.ss_market.application.decay_service import DecayService
from src.ss_market.application.ledger import NetWorthLedger


@pytest.fixture
def store(redis) -> LeaderboardStore:
    return LeaderboardStore(redis)


@pytest.fixture
def service(repo, store, session_factory) -> DecayService:
    return DecayService(
        repo=repo,
        ledger=NetWorthLedger(repo, store),
        session_factory=session_factory,
        decay_rate=Decimal("0.05"),
        idle_minutes=60,
        batch_size=2,
    )


class TestDecay:
    async def test_idle_price_compounds_across_sweeps(self, service, repo, long_ago) -> None:
        idle = repo.add_participant("g1", "idle", price=Decimal("100.00"), created_at=long_ago)

        first = await service.run()
        assert repo.price_of(idle.id) == Decimal("95.00")
        second = await service.run()

        assert repo.price_of(idle.id) == Decimal("90.25")
        assert first.decayed == second.decayed == 1
        assert repo.participants[idle.id].valuation.last_activity_at is None
        assert [p.price for p in repo.price_history] == [Decimal("95.00"), Decimal("90.25")]

    async def test_recent_activity_is_skipped(self, service, repo, long_ago) -> None:
        busy = repo.add_participant(
            "g1", "busy", created_at=long_ago, last_activity_at=utc_now()
        )
        result = await service.run()
        assert result.scanned == 0
        assert repo.price_of(busy.id) == Decimal("10.00")

    async def test_frozen_valuation_is_unchanged(self, service, repo, long_ago) -> None:
        frozen = repo.add_participant(
            "g1",
            "frozen",
            created_at=long_ago,
            frozen_until=utc_now() + timedelta(minutes=30),
        )

        result = await service.run()

        assert result.scanned == 1
        assert result.decayed == 0
        assert repo.price_of(frozen.id) == Decimal("10.00")
        assert repo.price_history == []

    async def test_price_floor(self, service, repo, long_ago) -> None:
        floor = repo.add_participant("g1", "floor", price=Decimal("1.00"), created_at=long_ago)
        result = await service.run()
        assert result.decayed == 0
        assert repo.price_of(floor.id) == Decimal("1.00")

    async def test_holders_are_recomputed(self, service, repo, store, long_ago) -> None:
        idle = repo.add_participant("g1", "idle", price=Decimal("100.00"), created_at=long_ago)
        holder = repo.add_participant("g1", "holder", balance=Decimal("0.00"))
        repo.add_holding(holder, idle, 10, Decimal("100.00"))

        result = await service.run()

        assert result.participants_recomputed == 2
        assert repo.participants[holder.id].net_worth == Decimal("950.00")
        assert await store.score("g1", holder.id) == Decimal("950.00")

    async def test_pages_through_all_candidates(
        self, service, repo, long_ago, db
    ) -> None:
        for i in range(3):
            repo.add_participant("g1", f"u{i}", created_at=long_ago)

        result = await service.run()

        assert result.scanned == 3
        assert result.decayed == 3
        assert all(
            repo.price_of(pid) == Decimal("9.50") for pid in repo.participants
        )
        assert db.commit.await_count == 2
