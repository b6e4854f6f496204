"""Valuation pricing — pure functions, no I/O.

Growth (per flush, for participants with a nonzero batch score):

    vol   = base volatility | 0.15 when amplified, damped above 100.00,
            clamped to [0.01, 0.15]
    delta = price * vol * log10(score + 1) * 0.25
    new   = min(price + max(delta, 0.01), price * 2), floored at 1.00

Decay (periodic job, for idle valuations):

    new = max(price * (1 - rate), 1.00), skipped while frozen

A growth freeze only shields against decay; scored activity still moves the
price up.
"""

from dataclasses import dataclass
from decimal import Decimal

from src.ss_common.money import to_money
from src.ss_market.domain.modifiers import EffectiveParams

MIN_PRICE = Decimal("1.00")
MIN_TICK = Decimal("0.01")
MIN_VOLATILITY = Decimal("0.01")
MAX_VOLATILITY = Decimal("0.15")
AMPLIFIED_VOLATILITY = Decimal("0.15")
DAMPING_PRICE_THRESHOLD = Decimal("100.00")
DAMPENING_FACTOR = Decimal("0.25")
MAX_GROWTH_RATIO = Decimal("2")
SUPPRESSED_GROWTH_PENALTY = Decimal("0.5")


@dataclass(frozen=True)
class PriceUpdate:
    old_price: Decimal
    new_price: Decimal
    volatility: Decimal

    @property
    def changed(self) -> bool:
        return self.new_price != self.old_price


def clamp_volatility(volatility: Decimal) -> Decimal:
    return min(max(volatility, MIN_VOLATILITY), MAX_VOLATILITY)


def effective_volatility(
    price: Decimal, base_volatility: Decimal, amplified: bool = False
) -> Decimal:
    """Volatility actually applied to a growth step.

    Above the damping threshold the coefficient shrinks with
    log10(threshold) / log10(price), so expensive instruments move less in
    relative terms. The result is always inside [0.01, 0.15].
    """
    vol = AMPLIFIED_VOLATILITY if amplified else base_volatility
    if price > DAMPING_PRICE_THRESHOLD:
        vol = vol * DAMPING_PRICE_THRESHOLD.log10() / price.log10()
    return clamp_volatility(vol)


def compute_price(
    current_price: Decimal,
    base_volatility: Decimal,
    score: Decimal,
    params: EffectiveParams,
    growth_cap_ratio: Decimal = MAX_GROWTH_RATIO,
) -> PriceUpdate:
    """Apply one growth step for a participant's batch score."""
    vol = effective_volatility(current_price, base_volatility, params.amplified_volatility)
    if score <= 0:
        return PriceUpdate(current_price, current_price, vol)

    delta = current_price * vol * (score + 1).log10() * DAMPENING_FACTOR
    if params.suppressed_growth:
        delta = delta * SUPPRESSED_GROWTH_PENALTY
    if delta < MIN_TICK:
        delta = MIN_TICK

    ceiling = current_price * growth_cap_ratio
    new_price = to_money(min(current_price + delta, ceiling))
    return PriceUpdate(current_price, max(new_price, MIN_PRICE), vol)


def apply_decay(price: Decimal, decay_rate: Decimal, frozen: bool) -> Decimal:
    """One decay cycle. Frozen valuations are left untouched."""
    if frozen:
        return price
    return max(to_money(price * (1 - decay_rate)), MIN_PRICE)
