"""Unit tests for status-modifier resolution."""

from datetime import timedelta
from decimal import Decimal

from src.ss_common.datetime_utils import utc_now
from src.ss_common.enums import ModifierKind
from src.ss_market.domain.models import Participant, StatusModifier, Valuation
from src.ss_market.domain.modifiers import resolve_effective_params


def _participant(modifiers=(), frozen_until=None) -> Participant:
    return Participant(
        id="p1",
        platform_user_id="u1",
        guild_id="g1",
        display_name="alice",
        balance=Decimal("0"),
        net_worth=Decimal("0"),
        modifiers=list(modifiers),
        valuation=Valuation(
            id="v1", participant_id="p1", symbol="ALI",
            current_price=Decimal("10"), volatility=Decimal("0.1"), total_units=1000,
            frozen_until=frozen_until,
        ),
    )


def test_no_modifiers_gives_defaults() -> None:
    params = resolve_effective_params(_participant(), utc_now())
    assert params.score_multiplier == 1
    assert not params.amplified_volatility
    assert not params.suppressed_growth
    assert not params.frozen


def test_active_modifiers_are_applied() -> None:
    now = utc_now()
    later = now + timedelta(minutes=5)
    params = resolve_effective_params(
        _participant(
            [
                StatusModifier(ModifierKind.AMPLIFIED_SCORING, later),
                StatusModifier(ModifierKind.AMPLIFIED_VOLATILITY, later),
                StatusModifier(ModifierKind.SUPPRESSED_GROWTH, later),
            ]
        ),
        now,
    )
    assert params.score_multiplier == 2
    assert params.amplified_volatility
    assert params.suppressed_growth


def test_expired_modifiers_are_ignored() -> None:
    now = utc_now()
    params = resolve_effective_params(
        _participant([StatusModifier(ModifierKind.AMPLIFIED_SCORING, now - timedelta(seconds=1))]),
        now,
    )
    assert params.score_multiplier == 1


def test_freeze_comes_from_valuation() -> None:
    now = utc_now()
    frozen = _participant(frozen_until=now + timedelta(hours=1))
    thawed = _participant(frozen_until=now - timedelta(hours=1))
    assert resolve_effective_params(frozen, now).frozen
    assert not resolve_effective_params(thawed, now).frozen
