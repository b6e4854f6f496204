"""ParticipantRepository SQL shape: lock order, batch ordering and row mapping."""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from src.ss_market.infrastructure.persistence import (
    _GET_BY_IDENTITIES_SQL,
    _GET_TOP_HOLDING_SQL,
    ParticipantRepository,
)


def _db_rows(rows: list[object]) -> AsyncMock:
    """DB mock where execute().fetchall() returns the given rows."""
    mock_db = AsyncMock()
    mock_result = MagicMock()
    mock_result.fetchall.return_value = rows
    mock_result.fetchone.return_value = rows[0] if rows else None
    mock_db.execute.return_value = mock_result
    return mock_db


class TestFlushLookupLocks:
    def test_valuations_locked_in_id_order(self) -> None:
        sql = str(_GET_BY_IDENTITIES_SQL)
        assert "ORDER BY v.id" in sql
        assert "FOR UPDATE OF v" in sql

    async def test_lookup_passes_parallel_identity_arrays(self) -> None:
        db = _db_rows([])
        repo = ParticipantRepository()

        found = await repo.get_participants_by_identities(db, [("g1", "u1"), ("g2", "u2")])

        assert found == {}
        params = db.execute.call_args[0][1]
        assert params == {"guild_ids": ["g1", "g2"], "user_ids": ["u1", "u2"]}

    async def test_empty_lookup_skips_sql(self) -> None:
        db = _db_rows([])
        assert await ParticipantRepository().get_participants_by_identities(db, []) == {}
        db.execute.assert_not_called()


class TestBatchUpdateOrder:
    async def test_price_updates_sent_in_id_order(self) -> None:
        db = _db_rows([])
        prices = {"v3": Decimal("3.00"), "v1": Decimal("1.00"), "v2": Decimal("2.00")}

        await ParticipantRepository().update_valuation_prices(db, prices, activity=True)

        params = db.execute.call_args[0][1]
        assert [p["valuation_id"] for p in params] == ["v1", "v2", "v3"]
        assert params[0]["price"] == Decimal("1.00")

    async def test_net_worth_updates_sent_in_id_order(self) -> None:
        db = _db_rows([])

        await ParticipantRepository().update_net_worths(
            db, {"p2": Decimal("20.00"), "p1": Decimal("10.00")}
        )

        params = db.execute.call_args[0][1]
        assert [p["participant_id"] for p in params] == ["p1", "p2"]


class TestMarketBoardQueries:
    async def test_listing_rows_are_mapped(self) -> None:
        row = SimpleNamespace(
            valuation_id="v1",
            participant_id="p1",
            platform_user_id="u1",
            display_name="Alice",
            symbol="ALI",
            current_price=Decimal("12.34"),
        )
        db = _db_rows([row])

        listings = await ParticipantRepository().list_guild_valuations(db, "g1", 10, 10)

        assert listings[0].symbol == "ALI"
        assert listings[0].current_price == Decimal("12.34")
        assert db.execute.call_args[0][1] == {"guild_id": "g1", "offset": 10, "limit": 10}

    async def test_count(self) -> None:
        db = AsyncMock()
        result = MagicMock()
        result.scalar_one.return_value = 7
        db.execute.return_value = result

        assert await ParticipantRepository().count_guild_valuations(db, "g1") == 7

    async def test_top_holding_absent(self) -> None:
        db = _db_rows([])
        assert await ParticipantRepository().get_top_holding(db, "v1") is None

    def test_top_holding_ties_go_to_earliest(self) -> None:
        sql = str(_GET_TOP_HOLDING_SQL)
        assert "ORDER BY h.units DESC, h.created_at ASC" in sql
        assert "h.units > 0" in sql
