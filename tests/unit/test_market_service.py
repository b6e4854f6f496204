"""Unit tests for MarketService: the board, majority holders and ticker renames."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from src.ss_common.errors import (
    InsufficientBalanceError,
    NotMajorityShareholderError,
    ParticipantNotFoundError,
    ValuationNotFoundError,
)
from src.ss_leaderboard.infrastructure.store import LeaderboardStore
from src.ss_market.application.ledger import NetWorthLedger
from src.ss_market.application.market_service import MarketService
from src.ss_market.application.schemas import RenameTickerRequest


@pytest.fixture
def store(redis) -> LeaderboardStore:
    return LeaderboardStore(redis)


@pytest.fixture
def service(repo, store) -> MarketService:
    return MarketService(
        repo=repo,
        ledger=NetWorthLedger(repo, store),
        page_size=2,
        rename_fee=Decimal("500.00"),
    )


class TestMarketBoard:
    async def test_sorted_by_price_with_ranks(self, service, repo, db) -> None:
        repo.add_participant("g1", "cheap", price=Decimal("5.00"))
        repo.add_participant("g1", "pricey", price=Decimal("40.00"))
        repo.add_participant("g1", "middle", price=Decimal("12.50"))
        repo.add_participant("g2", "elsewhere", price=Decimal("99.00"))

        first = await service.list_market(db, "g1", 1)
        second = await service.list_market(db, "g1", 2)

        assert first.total == 3
        assert first.total_pages == 2
        assert [i.platform_user_id for i in first.items] == ["pricey", "middle"]
        assert [i.rank for i in first.items] == [1, 2]
        assert first.items[0].current_price == "40.00"
        assert [(i.rank, i.platform_user_id) for i in second.items] == [(3, "cheap")]

    async def test_page_past_end_is_clamped(self, service, repo, db) -> None:
        for uid in ("a", "b", "c"):
            repo.add_participant("g1", uid)

        page = await service.list_market(db, "g1", 9)

        assert page.page == 2
        assert len(page.items) == 1

    async def test_empty_guild_has_one_empty_page(self, service, db) -> None:
        page = await service.list_market(db, "nowhere", 1)
        assert page.page == 1
        assert page.total_pages == 1
        assert page.items == []


class TestMajorityShareholder:
    async def test_no_holders(self, service, repo, db) -> None:
        repo.add_participant("g1", "owner", display_name="Owner")

        resp = await service.get_majority_shareholder(db, "g1", "owner")

        assert resp.symbol == "OWN"
        assert resp.shareholder is None

    async def test_largest_holder_is_returned(self, service, repo, db) -> None:
        owner = repo.add_participant("g1", "owner")
        small = repo.add_participant("g1", "small")
        big = repo.add_participant("g1", "big")
        repo.add_holding(small, owner, 10, Decimal("10.00"))
        repo.add_holding(big, owner, 40, Decimal("10.00"))

        resp = await service.get_majority_shareholder(db, "g1", "owner")

        assert resp.shareholder is not None
        assert resp.shareholder.participant_id == big.id
        assert resp.shareholder.units == 40

    async def test_tie_goes_to_earliest_holder(self, service, repo, db) -> None:
        owner = repo.add_participant("g1", "owner")
        first = repo.add_participant("g1", "first")
        second = repo.add_participant("g1", "second")
        repo.add_holding(first, owner, 20, Decimal("10.00"))
        repo.add_holding(second, owner, 20, Decimal("10.00"))

        resp = await service.get_majority_shareholder(db, "g1", "owner")

        assert resp.shareholder.platform_user_id == "first"

    async def test_owner_holding_most_means_no_majority_holder(
        self, service, repo, db
    ) -> None:
        owner = repo.add_participant("g1", "owner")
        other = repo.add_participant("g1", "other")
        repo.add_holding(owner, owner, 100, Decimal("10.00"))
        repo.add_holding(other, owner, 50, Decimal("10.00"))

        resp = await service.get_majority_shareholder(db, "g1", "owner")

        assert resp.shareholder is None

    async def test_unknown_owner(self, service, db) -> None:
        with pytest.raises(ValuationNotFoundError):
            await service.get_majority_shareholder(db, "g1", "ghost")


class TestRenameTicker:
    async def test_majority_holder_pays_fee_and_renames(
        self, service, repo, store, db
    ) -> None:
        owner = repo.add_participant("g1", "owner")
        holder = repo.add_participant("g1", "holder")
        repo.add_holding(holder, owner, 50, Decimal("10.00"))

        resp = await service.rename_ticker(db, "g1", "holder", "owner", "MOON")

        assert resp.old_symbol == "OWN"
        assert resp.new_symbol == "MOON"
        assert resp.fee == "500.00"
        assert resp.balance == "500.00"
        assert resp.net_worth == "1000.00"
        assert repo.participants[holder.id].balance == Decimal("500.00")
        assert repo.participants[owner.id].valuation.symbol == "MOON"
        assert await store.score("g1", holder.id) == Decimal("1000.00")
        db.commit.assert_awaited_once()

    async def test_minority_holder_is_refused(self, service, repo, db) -> None:
        owner = repo.add_participant("g1", "owner")
        big = repo.add_participant("g1", "big")
        small = repo.add_participant("g1", "small")
        repo.add_holding(big, owner, 40, Decimal("10.00"))
        repo.add_holding(small, owner, 10, Decimal("10.00"))

        with pytest.raises(NotMajorityShareholderError) as exc_info:
            await service.rename_ticker(db, "g1", "small", "owner", "NOPE")

        assert exc_info.value.code == 4004
        assert exc_info.value.http_status == 403
        assert repo.participants[owner.id].valuation.symbol == "OWN"
        assert repo.participants[small.id].balance == Decimal("1000.00")
        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()

    async def test_fee_above_balance_is_refused(self, service, repo, db) -> None:
        owner = repo.add_participant("g1", "owner")
        holder = repo.add_participant("g1", "holder", balance=Decimal("499.99"))
        repo.add_holding(holder, owner, 50, Decimal("10.00"))

        with pytest.raises(InsufficientBalanceError):
            await service.rename_ticker(db, "g1", "holder", "owner", "MOON")

        assert repo.participants[owner.id].valuation.symbol == "OWN"
        db.rollback.assert_awaited_once()

    async def test_unknown_caller(self, service, repo, db) -> None:
        repo.add_participant("g1", "owner")
        with pytest.raises(ParticipantNotFoundError):
            await service.rename_ticker(db, "g1", "ghost", "owner", "MOON")

    async def test_failed_write_rolls_back(self, service, repo, db) -> None:
        owner = repo.add_participant("g1", "owner")
        holder = repo.add_participant("g1", "holder")
        repo.add_holding(holder, owner, 50, Decimal("10.00"))
        repo.fail_on = "set_symbol"

        with pytest.raises(RuntimeError):
            await service.rename_ticker(db, "g1", "holder", "owner", "MOON")

        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()


class TestRenameTickerRequest:
    def test_symbol_is_uppercased(self) -> None:
        req = RenameTickerRequest(platform_user_id="a", target_user_id="b", new_symbol="moon")
        assert req.new_symbol == "MOON"

    @pytest.mark.parametrize("symbol", ["AB", "TOOLONG", "A-B!", "ÄBC"])
    def test_invalid_symbols(self, symbol: str) -> None:
        with pytest.raises(ValidationError):
            RenameTickerRequest(platform_user_id="a", target_user_id="b", new_symbol=symbol)
