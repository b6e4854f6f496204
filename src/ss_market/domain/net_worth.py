"""Net worth derivation — pure function, exact Decimal arithmetic."""

from collections.abc import Iterable, Mapping
from decimal import Decimal

from src.ss_market.domain.models import Holding, LeaderboardEntry, NetWorthInput


def compute_net_worth(
    balance: Decimal,
    holdings: Iterable[Holding],
    price_overrides: Mapping[str, Decimal] | None = None,
) -> Decimal:
    """net worth = balance + sum(units * price).

    `price_overrides` maps valuation id -> freshly computed price and wins
    over the price the holding was loaded with.
    """
    overrides = price_overrides or {}
    total = balance
    for h in holdings:
        price = overrides.get(h.valuation_id, h.current_price)
        total += price * h.units
    return total


def derive_entries(
    inputs: Iterable[NetWorthInput],
    price_overrides: Mapping[str, Decimal] | None = None,
) -> list[LeaderboardEntry]:
    return [
        LeaderboardEntry(
            guild_id=i.guild_id,
            participant_id=i.participant_id,
            display_name=i.display_name,
            net_worth=compute_net_worth(i.balance, i.holdings, price_overrides),
        )
        for i in inputs
    ]
