"""ParticipantRepository — concrete implementation of ParticipantRepositoryProtocol.

Batch writes go through executemany (a list of parameter dicts); batch reads
use unnest()/ANY() over array parameters so one round trip covers a whole
flush batch.

Transaction ownership: The CALLER (application service) is responsible for
committing or rolling back the session.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ss_common.enums import ModifierKind, TradeSide
from src.ss_market.domain.models import (
    Holding,
    MarketListing,
    NetWorthInput,
    Participant,
    PricePoint,
    StatusModifier,
    Valuation,
)
from src.ss_market.domain.repository import Identity, NewParticipant

# ---------------------------------------------------------------------------
# SQL: participants
# ---------------------------------------------------------------------------

_PARTICIPANT_COLUMNS = """
    p.id, p.platform_user_id, p.guild_id, p.display_name, p.balance, p.net_worth,
    p.created_at,
    v.id AS valuation_id, v.symbol, v.current_price, v.volatility, v.total_units,
    v.frozen_until, v.last_activity_at, v.updated_at AS valuation_updated_at
"""

# Flush lookup. Valuation rows are locked in id order, so overlapping flushes
# for the same participant serialize and each one prices from the committed
# value. Decay skips locked rows, so it never waits here.
_GET_BY_IDENTITIES_SQL = text(f"""
    SELECT {_PARTICIPANT_COLUMNS}
    FROM participants p
    JOIN unnest(CAST(:guild_ids AS varchar[]), CAST(:user_ids AS varchar[]))
         AS ident(guild_id, platform_user_id)
      ON p.guild_id = ident.guild_id AND p.platform_user_id = ident.platform_user_id
    JOIN valuations v ON v.participant_id = p.id
    ORDER BY v.id
    FOR UPDATE OF v
""")

_GET_BY_IDENTITY_SQL = text(f"""
    SELECT {_PARTICIPANT_COLUMNS}
    FROM participants p
    LEFT JOIN valuations v ON v.participant_id = p.id
    WHERE p.guild_id = :guild_id AND p.platform_user_id = :platform_user_id
""")

_GET_BY_IDENTITY_FOR_UPDATE_SQL = text(f"""
    SELECT {_PARTICIPANT_COLUMNS}
    FROM participants p
    LEFT JOIN valuations v ON v.participant_id = p.id
    WHERE p.guild_id = :guild_id AND p.platform_user_id = :platform_user_id
    FOR UPDATE OF p
""")

_GET_BY_ID_SQL = text(f"""
    SELECT {_PARTICIPANT_COLUMNS}
    FROM participants p
    LEFT JOIN valuations v ON v.participant_id = p.id
    WHERE p.id = :participant_id
""")

_GET_BY_ID_FOR_UPDATE_SQL = text(f"""
    SELECT {_PARTICIPANT_COLUMNS}
    FROM participants p
    LEFT JOIN valuations v ON v.participant_id = p.id
    WHERE p.id = :participant_id
    FOR UPDATE OF p
""")

_GET_MODIFIERS_SQL = text("""
    SELECT participant_id, kind, expires_at
    FROM participant_modifiers
    WHERE participant_id = ANY(CAST(:ids AS uuid[])) AND expires_at > NOW()
""")

# Participant and valuation are created in one statement so neither exists
# without the other. A concurrent creator wins silently via ON CONFLICT.
_CREATE_PARTICIPANT_SQL = text("""
    WITH new_p AS (
        INSERT INTO participants (platform_user_id, guild_id, display_name, balance, net_worth)
        VALUES (:platform_user_id, :guild_id, :display_name, :balance, :balance)
        ON CONFLICT (platform_user_id, guild_id) DO NOTHING
        RETURNING id
    )
    INSERT INTO valuations (participant_id, symbol, current_price, volatility, total_units)
    SELECT id, :symbol, :price, :volatility, :units FROM new_p
""")

_SET_BALANCE_SQL = text("""
    UPDATE participants
    SET balance = :balance, updated_at = NOW()
    WHERE id = :participant_id
""")

_LIST_IDS_SQL = text("""
    SELECT id FROM participants
    WHERE (CAST(:after_id AS uuid) IS NULL OR id > CAST(:after_id AS uuid))
    ORDER BY id ASC
    LIMIT :limit
""")

_GET_NAMES_SQL = text("""
    SELECT id, display_name FROM participants WHERE id = ANY(CAST(:ids AS uuid[]))
""")

_DELETE_PARTICIPANT_SQL = text("""
    DELETE FROM participants
    WHERE guild_id = :guild_id AND platform_user_id = :platform_user_id
    RETURNING id
""")

_DELETE_GUILD_SQL = text("""
    DELETE FROM participants WHERE guild_id = :guild_id RETURNING id
""")

_UPSERT_MODIFIER_SQL = text("""
    INSERT INTO participant_modifiers (participant_id, kind, expires_at)
    VALUES (:participant_id, :kind, :expires_at)
    ON CONFLICT (participant_id, kind) DO UPDATE SET expires_at = EXCLUDED.expires_at
""")

# ---------------------------------------------------------------------------
# SQL: valuations
# ---------------------------------------------------------------------------

_SET_FROZEN_SQL = text("""
    UPDATE valuations SET frozen_until = :frozen_until, updated_at = NOW()
    WHERE id = :valuation_id
""")

_UPDATE_PRICE_ACTIVITY_SQL = text("""
    UPDATE valuations
    SET current_price = :price, last_activity_at = NOW(), updated_at = NOW()
    WHERE id = :valuation_id
""")

_UPDATE_PRICE_SQL = text("""
    UPDATE valuations
    SET current_price = :price, updated_at = NOW()
    WHERE id = :valuation_id
""")

_INSERT_PRICE_HISTORY_SQL = text("""
    INSERT INTO price_history (valuation_id, price) VALUES (:valuation_id, :price)
""")

_LIST_PRICE_HISTORY_SQL = text("""
    SELECT valuation_id, price, recorded_at
    FROM price_history
    WHERE valuation_id = :valuation_id
    ORDER BY id DESC
    LIMIT :limit
""")

_LIST_DECAY_CANDIDATES_SQL = text("""
    SELECT id, participant_id, symbol, current_price, volatility, total_units,
           frozen_until, last_activity_at, updated_at
    FROM valuations
    WHERE COALESCE(last_activity_at, created_at) < :idle_before
      AND (CAST(:after_id AS uuid) IS NULL OR id > CAST(:after_id AS uuid))
    ORDER BY id ASC
    LIMIT :limit
    FOR UPDATE SKIP LOCKED
""")

_COUNT_GUILD_VALUATIONS_SQL = text("""
    SELECT COUNT(*) AS total
    FROM valuations v JOIN participants p ON p.id = v.participant_id
    WHERE p.guild_id = :guild_id
""")

# Equal prices fall back to valuation id so pages never overlap.
_LIST_GUILD_VALUATIONS_SQL = text("""
    SELECT v.id AS valuation_id, p.id AS participant_id, p.platform_user_id,
           p.display_name, v.symbol, v.current_price
    FROM valuations v JOIN participants p ON p.id = v.participant_id
    WHERE p.guild_id = :guild_id
    ORDER BY v.current_price DESC, v.id
    OFFSET :offset
    LIMIT :limit
""")

_SET_SYMBOL_SQL = text("""
    UPDATE valuations SET symbol = :symbol, updated_at = NOW()
    WHERE id = :valuation_id
""")

# ---------------------------------------------------------------------------
# SQL: holdings & net worth
# ---------------------------------------------------------------------------

_LIST_HOLDER_IDS_SQL = text("""
    SELECT DISTINCT holder_id FROM holdings
    WHERE valuation_id = ANY(CAST(:ids AS uuid[]))
""")

_HOLDING_COLUMNS = """
    h.holder_id, h.valuation_id, h.units, h.average_price, v.current_price, v.symbol
"""

_LIST_HOLDINGS_SQL = text(f"""
    SELECT {_HOLDING_COLUMNS}
    FROM holdings h JOIN valuations v ON v.id = h.valuation_id
    WHERE h.holder_id = ANY(CAST(:ids AS uuid[]))
    ORDER BY h.units DESC
""")

_GET_HOLDING_SQL = text(f"""
    SELECT {_HOLDING_COLUMNS}
    FROM holdings h JOIN valuations v ON v.id = h.valuation_id
    WHERE h.holder_id = :holder_id AND h.valuation_id = :valuation_id
""")

_GET_HOLDING_FOR_UPDATE_SQL = text(f"""
    SELECT {_HOLDING_COLUMNS}
    FROM holdings h JOIN valuations v ON v.id = h.valuation_id
    WHERE h.holder_id = :holder_id AND h.valuation_id = :valuation_id
    FOR UPDATE OF h
""")

_SAVE_HOLDING_SQL = text("""
    INSERT INTO holdings (holder_id, valuation_id, units, average_price)
    VALUES (:holder_id, :valuation_id, :units, :average_price)
    ON CONFLICT (holder_id, valuation_id) DO UPDATE
        SET units = EXCLUDED.units,
            average_price = EXCLUDED.average_price,
            updated_at = NOW()
""")

_DELETE_HOLDING_SQL = text("""
    DELETE FROM holdings WHERE holder_id = :holder_id AND valuation_id = :valuation_id
""")

# Largest position wins; a tie goes to whoever bought in first.
_GET_TOP_HOLDING_SQL = text(f"""
    SELECT {_HOLDING_COLUMNS}
    FROM holdings h JOIN valuations v ON v.id = h.valuation_id
    WHERE h.valuation_id = :valuation_id AND h.units > 0
    ORDER BY h.units DESC, h.created_at ASC
    LIMIT 1
""")

# Rows are locked in id order so concurrent recomputations cannot deadlock.
_LOAD_BALANCES_SQL = text("""
    SELECT id, guild_id, display_name, balance
    FROM participants
    WHERE id = ANY(CAST(:ids AS uuid[]))
    ORDER BY id
    FOR UPDATE
""")

_UPDATE_NET_WORTH_SQL = text("""
    UPDATE participants SET net_worth = :net_worth, updated_at = NOW()
    WHERE id = :participant_id
""")

_INSERT_TRADE_SQL = text("""
    INSERT INTO trades (participant_id, valuation_id, side, units, price_per_unit, total)
    VALUES (:participant_id, :valuation_id, :side, :units, :price, :total)
""")


def _row_to_valuation(row: object) -> Valuation | None:
    valuation_id = row.valuation_id  # type: ignore[attr-defined]
    if valuation_id is None:
        return None
    return Valuation(
        id=str(valuation_id),
        participant_id=str(row.id),  # type: ignore[attr-defined]
        symbol=row.symbol,  # type: ignore[attr-defined]
        current_price=row.current_price,  # type: ignore[attr-defined]
        volatility=row.volatility,  # type: ignore[attr-defined]
        total_units=row.total_units,  # type: ignore[attr-defined]
        frozen_until=row.frozen_until,  # type: ignore[attr-defined]
        last_activity_at=row.last_activity_at,  # type: ignore[attr-defined]
        updated_at=row.valuation_updated_at,  # type: ignore[attr-defined]
    )


def _row_to_participant(row: object) -> Participant:
    return Participant(
        id=str(row.id),  # type: ignore[attr-defined]
        platform_user_id=row.platform_user_id,  # type: ignore[attr-defined]
        guild_id=row.guild_id,  # type: ignore[attr-defined]
        display_name=row.display_name,  # type: ignore[attr-defined]
        balance=row.balance,  # type: ignore[attr-defined]
        net_worth=row.net_worth,  # type: ignore[attr-defined]
        valuation=_row_to_valuation(row),
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _row_to_holding(row: object) -> Holding:
    return Holding(
        holder_id=str(row.holder_id),  # type: ignore[attr-defined]
        valuation_id=str(row.valuation_id),  # type: ignore[attr-defined]
        units=row.units,  # type: ignore[attr-defined]
        average_price=row.average_price,  # type: ignore[attr-defined]
        current_price=row.current_price,  # type: ignore[attr-defined]
        symbol=row.symbol,  # type: ignore[attr-defined]
    )


class ParticipantRepository:
    """Concrete repository over the participants / valuations / holdings tables."""

    async def _attach_modifiers(
        self, db: AsyncSession, participants: list[Participant]
    ) -> None:
        if not participants:
            return
        by_id = {p.id: p for p in participants}
        result = await db.execute(_GET_MODIFIERS_SQL, {"ids": list(by_id)})
        for row in result.fetchall():
            by_id[str(row.participant_id)].modifiers.append(
                StatusModifier(kind=ModifierKind(row.kind), expires_at=row.expires_at)
            )

    async def get_participants_by_identities(
        self, db: AsyncSession, identities: list[Identity]
    ) -> dict[Identity, Participant]:
        if not identities:
            return {}
        result = await db.execute(
            _GET_BY_IDENTITIES_SQL,
            {
                "guild_ids": [g for g, _ in identities],
                "user_ids": [u for _, u in identities],
            },
        )
        participants = [_row_to_participant(row) for row in result.fetchall()]
        await self._attach_modifiers(db, participants)
        return {p.identity: p for p in participants}

    async def create_participants(
        self,
        db: AsyncSession,
        new: list[NewParticipant],
        balance: Decimal,
        price: Decimal,
        volatility: Decimal,
        units: int,
    ) -> None:
        if not new:
            return
        await db.execute(
            _CREATE_PARTICIPANT_SQL,
            [
                {
                    "platform_user_id": n.platform_user_id,
                    "guild_id": n.guild_id,
                    "display_name": n.display_name,
                    "symbol": n.symbol,
                    "balance": balance,
                    "price": price,
                    "volatility": volatility,
                    "units": units,
                }
                for n in new
            ],
        )

    async def get_participant(
        self,
        db: AsyncSession,
        guild_id: str,
        platform_user_id: str,
        for_update: bool = False,
    ) -> Participant | None:
        sql = _GET_BY_IDENTITY_FOR_UPDATE_SQL if for_update else _GET_BY_IDENTITY_SQL
        result = await db.execute(
            sql, {"guild_id": guild_id, "platform_user_id": platform_user_id}
        )
        row = result.fetchone()
        if row is None:
            return None
        participant = _row_to_participant(row)
        await self._attach_modifiers(db, [participant])
        return participant

    async def get_participant_by_id(
        self, db: AsyncSession, participant_id: str, for_update: bool = False
    ) -> Participant | None:
        sql = _GET_BY_ID_FOR_UPDATE_SQL if for_update else _GET_BY_ID_SQL
        result = await db.execute(sql, {"participant_id": participant_id})
        row = result.fetchone()
        if row is None:
            return None
        participant = _row_to_participant(row)
        await self._attach_modifiers(db, [participant])
        return participant

    async def set_balance(
        self, db: AsyncSession, participant_id: str, balance: Decimal
    ) -> None:
        await db.execute(
            _SET_BALANCE_SQL, {"participant_id": participant_id, "balance": balance}
        )

    async def list_participant_ids(
        self, db: AsyncSession, after_id: str | None, limit: int
    ) -> list[str]:
        result = await db.execute(_LIST_IDS_SQL, {"after_id": after_id, "limit": limit})
        return [str(row.id) for row in result.fetchall()]

    async def get_display_names(
        self, db: AsyncSession, participant_ids: list[str]
    ) -> dict[str, str]:
        if not participant_ids:
            return {}
        result = await db.execute(_GET_NAMES_SQL, {"ids": participant_ids})
        return {str(row.id): row.display_name for row in result.fetchall()}

    async def delete_participant(
        self, db: AsyncSession, guild_id: str, platform_user_id: str
    ) -> str | None:
        result = await db.execute(
            _DELETE_PARTICIPANT_SQL,
            {"guild_id": guild_id, "platform_user_id": platform_user_id},
        )
        row = result.fetchone()
        return str(row.id) if row else None

    async def delete_guild(self, db: AsyncSession, guild_id: str) -> list[str]:
        result = await db.execute(_DELETE_GUILD_SQL, {"guild_id": guild_id})
        return [str(row.id) for row in result.fetchall()]

    async def upsert_modifier(
        self,
        db: AsyncSession,
        participant_id: str,
        kind: ModifierKind,
        expires_at: datetime,
    ) -> None:
        await db.execute(
            _UPSERT_MODIFIER_SQL,
            {"participant_id": participant_id, "kind": kind.value, "expires_at": expires_at},
        )

    async def set_frozen_until(
        self, db: AsyncSession, valuation_id: str, frozen_until: datetime
    ) -> None:
        await db.execute(
            _SET_FROZEN_SQL, {"valuation_id": valuation_id, "frozen_until": frozen_until}
        )

    async def update_valuation_prices(
        self, db: AsyncSession, prices: dict[str, Decimal], activity: bool
    ) -> None:
        if not prices:
            return
        sql = _UPDATE_PRICE_ACTIVITY_SQL if activity else _UPDATE_PRICE_SQL
        # id order, matching the lookup lock order
        await db.execute(
            sql,
            [{"valuation_id": vid, "price": prices[vid]} for vid in sorted(prices)],
        )

    async def append_price_history(
        self, db: AsyncSession, prices: dict[str, Decimal]
    ) -> None:
        if not prices:
            return
        await db.execute(
            _INSERT_PRICE_HISTORY_SQL,
            [{"valuation_id": vid, "price": price} for vid, price in prices.items()],
        )

    async def list_price_history(
        self, db: AsyncSession, valuation_id: str, limit: int
    ) -> list[PricePoint]:
        result = await db.execute(
            _LIST_PRICE_HISTORY_SQL, {"valuation_id": valuation_id, "limit": limit}
        )
        return [
            PricePoint(
                valuation_id=str(row.valuation_id),
                price=row.price,
                recorded_at=row.recorded_at,
            )
            for row in result.fetchall()
        ]

    async def list_decay_candidates(
        self,
        db: AsyncSession,
        idle_before: datetime,
        after_id: str | None,
        limit: int,
    ) -> list[Valuation]:
        result = await db.execute(
            _LIST_DECAY_CANDIDATES_SQL,
            {"idle_before": idle_before, "after_id": after_id, "limit": limit},
        )
        return [
            Valuation(
                id=str(row.id),
                participant_id=str(row.participant_id),
                symbol=row.symbol,
                current_price=row.current_price,
                volatility=row.volatility,
                total_units=row.total_units,
                frozen_until=row.frozen_until,
                last_activity_at=row.last_activity_at,
                updated_at=row.updated_at,
            )
            for row in result.fetchall()
        ]

    async def count_guild_valuations(self, db: AsyncSession, guild_id: str) -> int:
        result = await db.execute(_COUNT_GUILD_VALUATIONS_SQL, {"guild_id": guild_id})
        return int(result.scalar_one())

    async def list_guild_valuations(
        self, db: AsyncSession, guild_id: str, offset: int, limit: int
    ) -> list[MarketListing]:
        result = await db.execute(
            _LIST_GUILD_VALUATIONS_SQL,
            {"guild_id": guild_id, "offset": offset, "limit": limit},
        )
        return [
            MarketListing(
                valuation_id=str(row.valuation_id),
                participant_id=str(row.participant_id),
                platform_user_id=row.platform_user_id,
                display_name=row.display_name,
                symbol=row.symbol,
                current_price=row.current_price,
            )
            for row in result.fetchall()
        ]

    async def set_symbol(self, db: AsyncSession, valuation_id: str, symbol: str) -> None:
        await db.execute(_SET_SYMBOL_SQL, {"valuation_id": valuation_id, "symbol": symbol})

    async def list_holder_ids(
        self, db: AsyncSession, valuation_ids: list[str]
    ) -> list[str]:
        if not valuation_ids:
            return []
        result = await db.execute(_LIST_HOLDER_IDS_SQL, {"ids": valuation_ids})
        return [str(row.holder_id) for row in result.fetchall()]

    async def list_holdings(self, db: AsyncSession, holder_id: str) -> list[Holding]:
        result = await db.execute(_LIST_HOLDINGS_SQL, {"ids": [holder_id]})
        return [_row_to_holding(row) for row in result.fetchall()]

    async def get_holding(
        self,
        db: AsyncSession,
        holder_id: str,
        valuation_id: str,
        for_update: bool = False,
    ) -> Holding | None:
        sql = _GET_HOLDING_FOR_UPDATE_SQL if for_update else _GET_HOLDING_SQL
        result = await db.execute(
            sql, {"holder_id": holder_id, "valuation_id": valuation_id}
        )
        row = result.fetchone()
        return _row_to_holding(row) if row else None

    async def save_holding(self, db: AsyncSession, holding: Holding) -> None:
        await db.execute(
            _SAVE_HOLDING_SQL,
            {
                "holder_id": holding.holder_id,
                "valuation_id": holding.valuation_id,
                "units": holding.units,
                "average_price": holding.average_price,
            },
        )

    async def delete_holding(
        self, db: AsyncSession, holder_id: str, valuation_id: str
    ) -> None:
        await db.execute(
            _DELETE_HOLDING_SQL, {"holder_id": holder_id, "valuation_id": valuation_id}
        )

    async def get_top_holding(
        self, db: AsyncSession, valuation_id: str
    ) -> Holding | None:
        result = await db.execute(_GET_TOP_HOLDING_SQL, {"valuation_id": valuation_id})
        row = result.fetchone()
        return _row_to_holding(row) if row else None

    async def load_net_worth_inputs(
        self, db: AsyncSession, participant_ids: list[str]
    ) -> list[NetWorthInput]:
        if not participant_ids:
            return []
        balances = await db.execute(_LOAD_BALANCES_SQL, {"ids": participant_ids})
        inputs = {
            str(row.id): NetWorthInput(
                participant_id=str(row.id),
                guild_id=row.guild_id,
                display_name=row.display_name,
                balance=row.balance,
            )
            for row in balances.fetchall()
        }
        holdings = await db.execute(_LIST_HOLDINGS_SQL, {"ids": list(inputs)})
        for row in holdings.fetchall():
            inputs[str(row.holder_id)].holdings.append(_row_to_holding(row))
        return list(inputs.values())

    async def update_net_worths(
        self, db: AsyncSession, net_worths: dict[str, Decimal]
    ) -> None:
        if not net_worths:
            return
        await db.execute(
            _UPDATE_NET_WORTH_SQL,
            [{"participant_id": pid, "net_worth": net_worths[pid]} for pid in sorted(net_worths)],
        )

    async def record_trade(
        self,
        db: AsyncSession,
        participant_id: str,
        valuation_id: str,
        side: TradeSide,
        units: int,
        price: Decimal,
        total: Decimal,
    ) -> None:
        await db.execute(
            _INSERT_TRADE_SQL,
            {
                "participant_id": participant_id,
                "valuation_id": valuation_id,
                "side": side.value,
                "units": units,
                "price": price,
                "total": total,
            },
        )
