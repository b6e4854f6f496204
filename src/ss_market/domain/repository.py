"""Repository Protocol — dependency inversion for testability.

Unit tests inject an in-memory fake that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ss_common.enums import ModifierKind, TradeSide
from src.ss_market.domain.models import (
    Holding,
    MarketListing,
    NetWorthInput,
    Participant,
    PricePoint,
    Valuation,
)

Identity = tuple[str, str]  # (guild_id, platform_user_id)


@dataclass
class NewParticipant:
    guild_id: str
    platform_user_id: str
    display_name: str
    symbol: str


class ParticipantRepositoryProtocol(Protocol):
    # --- participants -------------------------------------------------------

    async def get_participants_by_identities(
        self, db: AsyncSession, identities: list[Identity]
    ) -> dict[Identity, Participant]: ...

    async def create_participants(
        self,
        db: AsyncSession,
        new: list[NewParticipant],
        balance: Decimal,
        price: Decimal,
        volatility: Decimal,
        units: int,
    ) -> None: ...

    async def get_participant(
        self,
        db: AsyncSession,
        guild_id: str,
        platform_user_id: str,
        for_update: bool = False,
    ) -> Participant | None: ...

    async def get_participant_by_id(
        self, db: AsyncSession, participant_id: str, for_update: bool = False
    ) -> Participant | None: ...

    async def set_balance(
        self, db: AsyncSession, participant_id: str, balance: Decimal
    ) -> None: ...

    async def list_participant_ids(
        self, db: AsyncSession, after_id: str | None, limit: int
    ) -> list[str]: ...

    async def get_display_names(
        self, db: AsyncSession, participant_ids: list[str]
    ) -> dict[str, str]: ...

    async def delete_participant(
        self, db: AsyncSession, guild_id: str, platform_user_id: str
    ) -> str | None: ...

    async def delete_guild(self, db: AsyncSession, guild_id: str) -> list[str]: ...

    async def upsert_modifier(
        self,
        db: AsyncSession,
        participant_id: str,
        kind: ModifierKind,
        expires_at: datetime,
    ) -> None: ...

    async def set_frozen_until(
        self, db: AsyncSession, valuation_id: str, frozen_until: datetime
    ) -> None: ...

    # --- valuations ---------------------------------------------------------

    async def update_valuation_prices(
        self, db: AsyncSession, prices: dict[str, Decimal], activity: bool
    ) -> None: ...

    async def append_price_history(
        self, db: AsyncSession, prices: dict[str, Decimal]
    ) -> None: ...

    async def list_price_history(
        self, db: AsyncSession, valuation_id: str, limit: int
    ) -> list[PricePoint]: ...

    async def list_decay_candidates(
        self,
        db: AsyncSession,
        idle_before: datetime,
        after_id: str | None,
        limit: int,
    ) -> list[Valuation]: ...

    async def count_guild_valuations(self, db: AsyncSession, guild_id: str) -> int: ...

    async def list_guild_valuations(
        self, db: AsyncSession, guild_id: str, offset: int, limit: int
    ) -> list[MarketListing]: ...

    async def set_symbol(self, db: AsyncSession, valuation_id: str, symbol: str) -> None: ...

    # --- holdings & net worth ----------------------------------------------

    async def list_holder_ids(
        self, db: AsyncSession, valuation_ids: list[str]
    ) -> list[str]: ...

    async def list_holdings(self, db: AsyncSession, holder_id: str) -> list[Holding]: ...

    async def get_holding(
        self,
        db: AsyncSession,
        holder_id: str,
        valuation_id: str,
        for_update: bool = False,
    ) -> Holding | None: ...

    async def save_holding(self, db: AsyncSession, holding: Holding) -> None: ...

    async def delete_holding(
        self, db: AsyncSession, holder_id: str, valuation_id: str
    ) -> None: ...

    async def get_top_holding(
        self, db: AsyncSession, valuation_id: str
    ) -> Holding | None: ...

    async def load_net_worth_inputs(
        self, db: AsyncSession, participant_ids: list[str]
    ) -> list[NetWorthInput]: ...

    async def update_net_worths(
        self, db: AsyncSession, net_worths: dict[str, Decimal]
    ) -> None: ...

    async def record_trade(
        self,
        db: AsyncSession,
        participant_id: str,
        valuation_id: str,
        side: TradeSide,
        units: int,
        price: Decimal,
        total: Decimal,
    ) -> None: ...
