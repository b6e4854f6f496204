"""Unit tests for batch scoring."""

from decimal import Decimal

from src.ss_aggregator.domain.scoring import derive_symbol, score_batch, score_event
from src.ss_ingest.domain.events import MessageEvent, ReactionEvent, VoiceMinuteEvent
from src.ss_market.domain.modifiers import EffectiveParams

_IDENT = {"guild_id": "g1", "platform_user_id": "u1"}


class TestScoreEvent:
    def test_message_is_half_length(self) -> None:
        assert score_event(MessageEvent(magnitude=50, **_IDENT)) == Decimal("25")
        assert score_event(MessageEvent(magnitude=7, **_IDENT)) == Decimal("3.5")

    def test_message_length_capped_at_200(self) -> None:
        assert score_event(MessageEvent(magnitude=5000, **_IDENT)) == Decimal("100")

    def test_voice_is_taken_as_sent(self) -> None:
        assert score_event(VoiceMinuteEvent(magnitude=14, **_IDENT)) == Decimal("14")

    def test_reaction_is_flat(self) -> None:
        assert score_event(ReactionEvent(magnitude=999, **_IDENT)) == Decimal("5")


class TestScoreBatch:
    def test_sum(self) -> None:
        events = [
            MessageEvent(magnitude=50, **_IDENT),
            ReactionEvent(**_IDENT),
            VoiceMinuteEvent(magnitude=4, **_IDENT),
        ]
        assert score_batch(events, EffectiveParams()) == Decimal("34")

    def test_amplified_scoring_doubles_total(self) -> None:
        events = [MessageEvent(magnitude=50, **_IDENT)]
        assert score_batch(events, EffectiveParams(score_multiplier=2)) == Decimal("50")

    def test_empty(self) -> None:
        assert score_batch([], EffectiveParams()) == Decimal("0")


class TestDeriveSymbol:
    def test_letters(self) -> None:
        assert derive_symbol("alice") == "ALI"

    def test_non_letters_become_x(self) -> None:
        assert derive_symbol("4b_") == "XBX"

    def test_empty_name(self) -> None:
        assert derive_symbol("") == "USR"
