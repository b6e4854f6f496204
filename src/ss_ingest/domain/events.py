"""Activity events — a closed tagged union, JSON-encoded on the queue.

    MESSAGE            magnitude = message length in characters
    VOICE_MINUTE       magnitude = points, pre-scaled by the producer (2 per minute)
    REACTION_RECEIVED  magnitude ignored, flat score

Unknown `kind` values fail validation and are dropped by the aggregator.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from src.ss_common.datetime_utils import epoch_ms
from src.ss_common.enums import EventKind


class _EventBase(BaseModel):
    guild_id: str = Field(..., min_length=1, max_length=64)
    platform_user_id: str = Field(..., min_length=1, max_length=64)
    magnitude: int = Field(1, ge=0)
    display_name: str | None = Field(None, max_length=100)
    metadata: dict[str, Any] | None = None
    enqueued_at: int = Field(default_factory=epoch_ms)

    @property
    def identity(self) -> tuple[str, str]:
        return (self.guild_id, self.platform_user_id)

    @property
    def content_hash(self) -> str | None:
        if not self.metadata:
            return None
        value = self.metadata.get("content_hash")
        return str(value) if value else None


class MessageEvent(_EventBase):
    kind: Literal["MESSAGE"] = EventKind.MESSAGE.value


class VoiceMinuteEvent(_EventBase):
    kind: Literal["VOICE_MINUTE"] = EventKind.VOICE_MINUTE.value


class ReactionEvent(_EventBase):
    kind: Literal["REACTION_RECEIVED"] = EventKind.REACTION_RECEIVED.value


ActivityEvent = Annotated[
    Union[MessageEvent, VoiceMinuteEvent, ReactionEvent],
    Field(discriminator="kind"),
]

activity_event_adapter = TypeAdapter(ActivityEvent)


def encode_event(event: MessageEvent | VoiceMinuteEvent | ReactionEvent) -> str:
    return event.model_dump_json()


def decode_event(raw: str | bytes) -> MessageEvent | VoiceMinuteEvent | ReactionEvent:
    """Parse one queue item. Raises pydantic.ValidationError on bad input."""
    return activity_event_adapter.validate_json(raw)
