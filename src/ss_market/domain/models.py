"""Domain models for ss_market — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from src.ss_common.enums import ModifierKind


@dataclass
class StatusModifier:
    kind: ModifierKind
    expires_at: datetime

    def is_active(self, now: datetime) -> bool:
        return self.expires_at > now


@dataclass
class Valuation:
    id: str
    participant_id: str
    symbol: str
    current_price: Decimal
    volatility: Decimal
    total_units: int
    frozen_until: datetime | None = None
    last_activity_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Participant:
    id: str
    platform_user_id: str
    guild_id: str
    display_name: str
    balance: Decimal
    net_worth: Decimal
    modifiers: list[StatusModifier] = field(default_factory=list)
    valuation: Valuation | None = None
    created_at: datetime | None = None

    @property
    def identity(self) -> tuple[str, str]:
        return (self.guild_id, self.platform_user_id)


@dataclass
class Holding:
    holder_id: str
    valuation_id: str
    units: int
    average_price: Decimal
    current_price: Decimal = Decimal("0")   # joined from valuations on read
    symbol: str = ""


@dataclass
class PricePoint:
    valuation_id: str
    price: Decimal
    recorded_at: datetime


@dataclass
class NetWorthInput:
    """Everything the ledger needs to derive one participant's net worth."""
    participant_id: str
    guild_id: str
    display_name: str
    balance: Decimal
    holdings: list[Holding] = field(default_factory=list)


@dataclass
class LeaderboardEntry:
    guild_id: str
    participant_id: str
    display_name: str
    net_worth: Decimal


@dataclass
class MarketListing:
    """One row of a guild's market board."""
    valuation_id: str
    participant_id: str
    platform_user_id: str
    display_name: str
    symbol: str
    current_price: Decimal
