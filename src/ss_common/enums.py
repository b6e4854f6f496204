"""Global enums — values are stored verbatim in the database and in Redis."""

from enum import Enum


class EventKind(str, Enum):
    MESSAGE = "MESSAGE"
    VOICE_MINUTE = "VOICE_MINUTE"
    REACTION_RECEIVED = "REACTION_RECEIVED"


class Verdict(str, Enum):
    """Admission decision returned by the rate limiter."""
    ACCEPT = "ACCEPT"
    COOLDOWN = "COOLDOWN"
    JAILED = "JAILED"
    TRIGGER_JAIL = "TRIGGER_JAIL"
    DUPLICATE = "DUPLICATE"


class ModifierKind(str, Enum):
    AMPLIFIED_SCORING = "AMPLIFIED_SCORING"
    AMPLIFIED_VOLATILITY = "AMPLIFIED_VOLATILITY"
    GROWTH_FREEZE = "GROWTH_FREEZE"
    SUPPRESSED_GROWTH = "SUPPRESSED_GROWTH"


class TradeSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class FlushState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
