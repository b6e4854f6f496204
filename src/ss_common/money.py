"""Fixed-point decimal helpers.

Balances, prices and net worth are Decimal quantized to cents. No float
arithmetic on money; floats only appear as Redis sorted-set scores.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Decimal | int | str) -> Decimal:
    """Quantize to cents with half-up rounding: Decimal('10.354') -> 10.35."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money_from_score(score: float) -> Decimal:
    """Convert a sorted-set score back to a cent-quantized Decimal."""
    return to_money(Decimal(repr(score)))


def money_to_display(value: Decimal) -> str:
    """Display string: Decimal('1234.5') -> '$1,234.50', Decimal('-12') -> '-$12.00'."""
    amount = to_money(value)
    if amount < 0:
        return f"-${-amount:,.2f}"
    return f"${amount:,.2f}"
