"""Shared test fixtures.

JWT_SECRET has no default in Settings, so it is set before anything imports
config.settings.
"""

import os

os.environ.setdefault("JWT_SECRET", "test-secret")

import copy
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import fakeredis
import pytest
from httpx import ASGITransport, AsyncClient

from src.ss_common.datetime_utils import utc_now
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


class InMemoryRepository:
    """Dict-backed ParticipantRepositoryProtocol. Ignores the session argument."""

    def __init__(self) -> None:
        self.participants: dict[str, Participant] = {}
        self.holdings: dict[tuple[str, str], Holding] = {}
        self.price_history: list[PricePoint] = []
        self.trades: list[dict[str, object]] = []
        self.fail_on: str | None = None

    # --- test helpers -------------------------------------------------------

    def _maybe_fail(self, name: str) -> None:
        if self.fail_on == name:
            raise RuntimeError(f"injected failure in {name}")

    def add_participant(
        self,
        guild_id: str,
        platform_user_id: str,
        balance: Decimal = Decimal("1000.00"),
        price: Decimal = Decimal("10.00"),
        volatility: Decimal = Decimal("0.10"),
        display_name: str | None = None,
        created_at: datetime | None = None,
        last_activity_at: datetime | None = None,
        frozen_until: datetime | None = None,
    ) -> Participant:
        pid = str(uuid.uuid4())
        name = display_name or platform_user_id
        p = Participant(
            id=pid,
            platform_user_id=platform_user_id,
            guild_id=guild_id,
            display_name=name,
            balance=balance,
            net_worth=balance,
            created_at=created_at or utc_now(),
            valuation=Valuation(
                id=str(uuid.uuid4()),
                participant_id=pid,
                symbol=name[:3].upper(),
                current_price=price,
                volatility=volatility,
                total_units=1000,
                frozen_until=frozen_until,
                last_activity_at=last_activity_at,
            ),
        )
        self.participants[pid] = p
        return p

    def add_holding(
        self, holder: Participant, owner: Participant, units: int, average_price: Decimal
    ) -> None:
        assert owner.valuation is not None
        self.holdings[(holder.id, owner.valuation.id)] = Holding(
            holder_id=holder.id,
            valuation_id=owner.valuation.id,
            units=units,
            average_price=average_price,
        )

    def price_of(self, participant_id: str) -> Decimal:
        valuation = self.participants[participant_id].valuation
        assert valuation is not None
        return valuation.current_price

    def by_identity(self, guild_id: str, platform_user_id: str) -> Participant | None:
        for p in self.participants.values():
            if p.identity == (guild_id, platform_user_id):
                return p
        return None

    def _valuations(self) -> dict[str, Valuation]:
        return {
            p.valuation.id: p.valuation for p in self.participants.values() if p.valuation
        }

    def _joined(self, h: Holding) -> Holding:
        v = self._valuations()[h.valuation_id]
        return replace(h, current_price=v.current_price, symbol=v.symbol)

    # --- participants -------------------------------------------------------

    async def get_participants_by_identities(
        self, db: object, identities: list[Identity]
    ) -> dict[Identity, Participant]:
        self._maybe_fail("get_participants_by_identities")
        wanted = set(identities)
        return {
            p.identity: copy.deepcopy(p)
            for p in self.participants.values()
            if p.identity in wanted
        }

    async def create_participants(
        self,
        db: object,
        new: list[NewParticipant],
        balance: Decimal,
        price: Decimal,
        volatility: Decimal,
        units: int,
    ) -> None:
        for n in new:
            if self.by_identity(n.guild_id, n.platform_user_id) is None:
                p = self.add_participant(
                    n.guild_id, n.platform_user_id, balance, price, volatility, n.display_name
                )
                assert p.valuation is not None
                p.valuation.symbol = n.symbol
                p.valuation.total_units = units

    async def get_participant(
        self, db: object, guild_id: str, platform_user_id: str, for_update: bool = False
    ) -> Participant | None:
        p = self.by_identity(guild_id, platform_user_id)
        return copy.deepcopy(p) if p else None

    async def get_participant_by_id(
        self, db: object, participant_id: str, for_update: bool = False
    ) -> Participant | None:
        p = self.participants.get(participant_id)
        return copy.deepcopy(p) if p else None

    async def set_balance(self, db: object, participant_id: str, balance: Decimal) -> None:
        self.participants[participant_id].balance = balance

    async def list_participant_ids(
        self, db: object, after_id: str | None, limit: int
    ) -> list[str]:
        ids = sorted(pid for pid in self.participants if after_id is None or pid > after_id)
        return ids[:limit]

    async def get_display_names(
        self, db: object, participant_ids: list[str]
    ) -> dict[str, str]:
        return {
            pid: self.participants[pid].display_name
            for pid in participant_ids
            if pid in self.participants
        }

    def _delete(self, p: Participant) -> None:
        vid = p.valuation.id if p.valuation else None
        self.holdings = {
            k: h for k, h in self.holdings.items() if k[0] != p.id and k[1] != vid
        }
        del self.participants[p.id]

    async def delete_participant(
        self, db: object, guild_id: str, platform_user_id: str
    ) -> str | None:
        p = self.by_identity(guild_id, platform_user_id)
        if p is None:
            return None
        self._delete(p)
        return p.id

    async def delete_guild(self, db: object, guild_id: str) -> list[str]:
        doomed = [p for p in self.participants.values() if p.guild_id == guild_id]
        for p in doomed:
            self._delete(p)
        return [p.id for p in doomed]

    async def upsert_modifier(
        self, db: object, participant_id: str, kind: ModifierKind, expires_at: datetime
    ) -> None:
        p = self.participants[participant_id]
        p.modifiers = [m for m in p.modifiers if m.kind != kind]
        p.modifiers.append(StatusModifier(kind=kind, expires_at=expires_at))

    async def set_frozen_until(
        self, db: object, valuation_id: str, frozen_until: datetime
    ) -> None:
        self._valuations()[valuation_id].frozen_until = frozen_until

    # --- valuations ---------------------------------------------------------

    async def update_valuation_prices(
        self, db: object, prices: dict[str, Decimal], activity: bool
    ) -> None:
        self._maybe_fail("update_valuation_prices")
        valuations = self._valuations()
        for vid, price in prices.items():
            valuations[vid].current_price = price
            if activity:
                valuations[vid].last_activity_at = utc_now()

    async def append_price_history(self, db: object, prices: dict[str, Decimal]) -> None:
        now = utc_now()
        for vid, price in prices.items():
            self.price_history.append(PricePoint(valuation_id=vid, price=price, recorded_at=now))

    async def list_price_history(
        self, db: object, valuation_id: str, limit: int
    ) -> list[PricePoint]:
        points = [p for p in self.price_history if p.valuation_id == valuation_id]
        return list(reversed(points))[:limit]

    async def list_decay_candidates(
        self, db: object, idle_before: datetime, after_id: str | None, limit: int
    ) -> list[Valuation]:
        out = []
        for p in self.participants.values():
            v = p.valuation
            if v is None:
                continue
            last = v.last_activity_at or p.created_at
            if last < idle_before and (after_id is None or v.id > after_id):
                out.append(copy.deepcopy(v))
        return sorted(out, key=lambda v: v.id)[:limit]

    def _guild_listings(self, guild_id: str) -> list[MarketListing]:
        rows = [
            MarketListing(
                valuation_id=p.valuation.id,
                participant_id=p.id,
                platform_user_id=p.platform_user_id,
                display_name=p.display_name,
                symbol=p.valuation.symbol,
                current_price=p.valuation.current_price,
            )
            for p in self.participants.values()
            if p.guild_id == guild_id and p.valuation is not None
        ]
        return sorted(rows, key=lambda r: (-r.current_price, r.valuation_id))

    async def count_guild_valuations(self, db: object, guild_id: str) -> int:
        return len(self._guild_listings(guild_id))

    async def list_guild_valuations(
        self, db: object, guild_id: str, offset: int, limit: int
    ) -> list[MarketListing]:
        return self._guild_listings(guild_id)[offset : offset + limit]

    async def set_symbol(self, db: object, valuation_id: str, symbol: str) -> None:
        self._maybe_fail("set_symbol")
        self._valuations()[valuation_id].symbol = symbol

    # --- holdings & net worth ----------------------------------------------

    async def list_holder_ids(self, db: object, valuation_ids: list[str]) -> list[str]:
        wanted = set(valuation_ids)
        return sorted({h.holder_id for h in self.holdings.values() if h.valuation_id in wanted})

    async def list_holdings(self, db: object, holder_id: str) -> list[Holding]:
        return [self._joined(h) for h in self.holdings.values() if h.holder_id == holder_id]

    async def get_holding(
        self, db: object, holder_id: str, valuation_id: str, for_update: bool = False
    ) -> Holding | None:
        h = self.holdings.get((holder_id, valuation_id))
        return self._joined(h) if h else None

    async def get_top_holding(self, db: object, valuation_id: str) -> Holding | None:
        # Insertion order stands in for created_at, so ties go to the earliest holder.
        best: Holding | None = None
        for h in self.holdings.values():
            if h.valuation_id == valuation_id and h.units > 0:
                if best is None or h.units > best.units:
                    best = h
        return self._joined(best) if best else None

    async def save_holding(self, db: object, holding: Holding) -> None:
        self.holdings[(holding.holder_id, holding.valuation_id)] = Holding(
            holder_id=holding.holder_id,
            valuation_id=holding.valuation_id,
            units=holding.units,
            average_price=holding.average_price,
        )

    async def delete_holding(self, db: object, holder_id: str, valuation_id: str) -> None:
        self.holdings.pop((holder_id, valuation_id), None)

    async def load_net_worth_inputs(
        self, db: object, participant_ids: list[str]
    ) -> list[NetWorthInput]:
        self._maybe_fail("load_net_worth_inputs")
        inputs = []
        for pid in sorted(participant_ids):
            p = self.participants.get(pid)
            if p is None:
                continue
            inputs.append(
                NetWorthInput(
                    participant_id=p.id,
                    guild_id=p.guild_id,
                    display_name=p.display_name,
                    balance=p.balance,
                    holdings=[
                        self._joined(h) for h in self.holdings.values() if h.holder_id == pid
                    ],
                )
            )
        return inputs

    async def update_net_worths(self, db: object, net_worths: dict[str, Decimal]) -> None:
        for pid, nw in net_worths.items():
            self.participants[pid].net_worth = nw

    async def record_trade(
        self,
        db: object,
        participant_id: str,
        valuation_id: str,
        side: TradeSide,
        units: int,
        price: Decimal,
        total: Decimal,
    ) -> None:
        self.trades.append(
            {
                "participant_id": participant_id,
                "valuation_id": valuation_id,
                "side": side,
                "units": units,
                "price": price,
                "total": total,
            }
        )


class FakeSession:
    """Stands in for AsyncSession; records commit/rollback."""

    def __init__(self) -> None:
        self.commit = AsyncMock()
        self.rollback = AsyncMock()

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc: object) -> bool:
        return False


@pytest.fixture
def repo() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def db() -> FakeSession:
    return FakeSession()


@pytest.fixture
def session_factory(db: FakeSession) -> Callable[[], FakeSession]:
    return lambda: db


@pytest.fixture
async def redis() -> fakeredis.FakeAsyncRedis:
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def long_ago() -> datetime:
    return utc_now() - timedelta(hours=3)


@pytest.fixture
async def client() -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints (no lifespan)."""
    from src.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
