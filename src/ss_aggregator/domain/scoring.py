"""Batch scoring — pure functions, no I/O.

    MESSAGE            min(length, 200) / 2
    VOICE_MINUTE       magnitude as sent (already 2 points per minute)
    REACTION_RECEIVED  5

A participant's batch score is the sum over their events, then multiplied by
the amplified-scoring factor when that modifier is active.
"""

from collections.abc import Iterable
from decimal import Decimal

from src.ss_common.enums import EventKind
from src.ss_ingest.domain.events import MessageEvent, ReactionEvent, VoiceMinuteEvent
from src.ss_market.domain.modifiers import EffectiveParams

MESSAGE_LENGTH_CAP = 200
MESSAGE_DIVISOR = Decimal("2")
REACTION_POINTS = Decimal("5")


def score_event(event: MessageEvent | VoiceMinuteEvent | ReactionEvent) -> Decimal:
    if event.kind == EventKind.MESSAGE.value:
        return Decimal(min(event.magnitude, MESSAGE_LENGTH_CAP)) / MESSAGE_DIVISOR
    if event.kind == EventKind.VOICE_MINUTE.value:
        return Decimal(event.magnitude)
    return REACTION_POINTS


def score_batch(
    events: Iterable[MessageEvent | VoiceMinuteEvent | ReactionEvent],
    params: EffectiveParams,
) -> Decimal:
    total = sum((score_event(e) for e in events), Decimal("0"))
    return total * params.score_multiplier


def derive_symbol(display_name: str) -> str:
    """Ticker from the first three letters of a name: 'alice' -> 'ALI', '42x' -> 'XXX'."""
    prefix = display_name[:3].upper()
    symbol = "".join(c if "A" <= c <= "Z" else "X" for c in prefix)
    return symbol or "USR"
