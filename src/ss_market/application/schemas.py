"""Pydantic request/response schemas for ss_market API.

Money leaves the service as a fixed two-decimal string plus a display string,
never as a float.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from src.ss_common.enums import ModifierKind, TradeSide
from src.ss_common.money import money_to_display, to_money
from src.ss_market.domain.models import Holding, MarketListing, Participant, PricePoint


def _money_str(value: Decimal) -> str:
    return str(to_money(value))


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class TradeRequest(BaseModel):
    platform_user_id: str = Field(..., min_length=1, description="Trader's platform user id")
    target_user_id: str = Field(..., min_length=1, description="Owner of the traded valuation")
    units: int = Field(..., gt=0, le=1_000_000)
    max_price: Decimal | None = Field(
        None, gt=0, description="Abort the acquisition if the price is above this bound"
    )


class RenameTickerRequest(BaseModel):
    platform_user_id: str = Field(..., min_length=1, description="Caller's platform user id")
    target_user_id: str = Field(..., min_length=1, description="Owner of the renamed valuation")
    new_symbol: str = Field(..., min_length=3, max_length=5)

    @field_validator("new_symbol")
    @classmethod
    def _alphanumeric_upper(cls, v: str) -> str:
        v = v.upper()
        if not (v.isascii() and v.isalnum()):
            raise ValueError("ticker must only contain alphanumeric characters")
        return v


class AdminParticipantUpdate(BaseModel):
    balance: Decimal | None = Field(None, ge=0, decimal_places=2)
    net_worth: Decimal | None = Field(None, decimal_places=2)


class ModifierRequest(BaseModel):
    kind: ModifierKind
    duration_minutes: int = Field(..., gt=0, le=60 * 24 * 30)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ModifierItem(BaseModel):
    kind: str
    expires_at: str


class HoldingItem(BaseModel):
    valuation_id: str
    symbol: str
    units: int
    average_price: str
    current_price: str
    value: str

    @classmethod
    def from_domain(cls, h: Holding) -> "HoldingItem":
        return cls(
            valuation_id=h.valuation_id,
            symbol=h.symbol,
            units=h.units,
            average_price=str(h.average_price),
            current_price=_money_str(h.current_price),
            value=_money_str(h.current_price * h.units),
        )


class ParticipantSnapshot(BaseModel):
    participant_id: str
    guild_id: str
    platform_user_id: str
    display_name: str
    balance: str
    balance_display: str
    net_worth: str
    net_worth_display: str
    symbol: str | None
    current_price: str | None
    volatility: str | None
    total_units: int | None
    frozen_until: str | None
    modifiers: list[ModifierItem]
    holdings: list[HoldingItem]

    @classmethod
    def from_domain(
        cls, p: Participant, holdings: list[Holding], now: datetime
    ) -> "ParticipantSnapshot":
        v = p.valuation
        frozen = v.frozen_until if v and v.frozen_until and v.frozen_until > now else None
        return cls(
            participant_id=p.id,
            guild_id=p.guild_id,
            platform_user_id=p.platform_user_id,
            display_name=p.display_name,
            balance=_money_str(p.balance),
            balance_display=money_to_display(p.balance),
            net_worth=_money_str(p.net_worth),
            net_worth_display=money_to_display(p.net_worth),
            symbol=v.symbol if v else None,
            current_price=_money_str(v.current_price) if v else None,
            volatility=str(v.volatility) if v else None,
            total_units=v.total_units if v else None,
            frozen_until=frozen.isoformat() if frozen else None,
            modifiers=[
                ModifierItem(kind=m.kind.value, expires_at=m.expires_at.isoformat())
                for m in p.modifiers
                if m.is_active(now)
            ],
            holdings=[HoldingItem.from_domain(h) for h in holdings],
        )


class PricePointItem(BaseModel):
    price: str
    recorded_at: str

    @classmethod
    def from_domain(cls, point: PricePoint) -> "PricePointItem":
        return cls(price=_money_str(point.price), recorded_at=point.recorded_at.isoformat())


class PriceHistoryResponse(BaseModel):
    symbol: str
    items: list[PricePointItem]


class TradeResponse(BaseModel):
    side: TradeSide
    symbol: str
    units: int
    price_per_unit: str
    gross: str
    tax: str
    total: str
    total_display: str
    profit: str | None = None
    balance: str
    net_worth: str
    units_held: int


class AdminUpdateResponse(BaseModel):
    participant_id: str
    balance: str
    net_worth: str


class ModifierResponse(BaseModel):
    participant_id: str
    kind: ModifierKind
    expires_at: str


class RemoveMemberResponse(BaseModel):
    participant_id: str
    holders_recomputed: int


class PurgeGuildResponse(BaseModel):
    guild_id: str
    participants_removed: int


class ResyncResponse(BaseModel):
    participants_synced: int


class MarketListingItem(BaseModel):
    rank: int
    symbol: str
    display_name: str
    platform_user_id: str
    current_price: str
    current_price_display: str

    @classmethod
    def from_domain(cls, rank: int, listing: MarketListing) -> "MarketListingItem":
        return cls(
            rank=rank,
            symbol=listing.symbol,
            display_name=listing.display_name,
            platform_user_id=listing.platform_user_id,
            current_price=_money_str(listing.current_price),
            current_price_display=money_to_display(listing.current_price),
        )


class MarketPageResponse(BaseModel):
    guild_id: str
    page: int
    total_pages: int
    total: int
    items: list[MarketListingItem]


class ShareholderItem(BaseModel):
    participant_id: str
    platform_user_id: str
    display_name: str
    units: int


class MajorityShareholderResponse(BaseModel):
    symbol: str
    shareholder: ShareholderItem | None


class RenameTickerResponse(BaseModel):
    old_symbol: str
    new_symbol: str
    fee: str
    balance: str
    net_worth: str
