"""Pydantic request/response schemas for ss_ingest API."""

from typing import Annotated, Union

from pydantic import BaseModel, Field, RootModel

from src.ss_common.enums import Verdict
from src.ss_ingest.domain.events import MessageEvent, ReactionEvent

# VOICE_MINUTE is not accepted here; it only comes out of VoiceTracker.stop.
InboundEvent = Annotated[
    Union[MessageEvent, ReactionEvent],
    Field(discriminator="kind"),
]


class IngestResponse(BaseModel):
    verdict: Verdict
    enqueued: bool


class VoiceStartRequest(BaseModel):
    guild_id: str = Field(..., min_length=1, max_length=64)
    platform_user_id: str = Field(..., min_length=1, max_length=64)
    display_name: str | None = Field(None, max_length=100)


class VoiceStopRequest(BaseModel):
    guild_id: str = Field(..., min_length=1, max_length=64)
    platform_user_id: str = Field(..., min_length=1, max_length=64)


class VoiceStopResponse(BaseModel):
    minutes: int
    points: int
    enqueued: bool


class IngestEventRequest(RootModel[InboundEvent]):
    """Request body: one message or reaction event, discriminated by `kind`."""
