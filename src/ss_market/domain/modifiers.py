"""Status-modifier resolution.

Every time-boxed modifier is checked against one `now` in one place, producing
an EffectiveParams value that scoring and the pricer consume as-is.
"""

from dataclasses import dataclass
from datetime import datetime

from src.ss_common.enums import ModifierKind
from src.ss_market.domain.models import Participant

AMPLIFIED_SCORING_MULTIPLIER = 2


@dataclass(frozen=True)
class EffectiveParams:
    score_multiplier: int = 1
    amplified_volatility: bool = False
    suppressed_growth: bool = False
    frozen: bool = False


def resolve_effective_params(participant: Participant, now: datetime) -> EffectiveParams:
    active = {m.kind for m in participant.modifiers if m.is_active(now)}
    valuation = participant.valuation
    if valuation is not None and valuation.frozen_until and valuation.frozen_until > now:
        active.add(ModifierKind.GROWTH_FREEZE)

    return EffectiveParams(
        score_multiplier=(
            AMPLIFIED_SCORING_MULTIPLIER if ModifierKind.AMPLIFIED_SCORING in active else 1
        ),
        amplified_volatility=ModifierKind.AMPLIFIED_VOLATILITY in active,
        suppressed_growth=ModifierKind.SUPPRESSED_GROWTH in active,
        frozen=ModifierKind.GROWTH_FREEZE in active,
    )
