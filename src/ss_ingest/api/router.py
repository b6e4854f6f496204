"""ss_ingest REST API — called by the platform gateway, not by end users."""

from fastapi import APIRouter, Request

from src.ss_common.response import ApiResponse, success_response
from src.ss_ingest.application.schemas import (
    IngestEventRequest,
    VoiceStartRequest,
    VoiceStopRequest,
)
from src.ss_ingest.application.service import IngestionService
from src.ss_ingest.application.voice import VoiceTracker

router = APIRouter(prefix="/ingest", tags=["ingest"])

_service = IngestionService()
_voice = VoiceTracker(_service)


@router.post("/events")
async def ingest_event(body: IngestEventRequest, request: Request) -> ApiResponse:
    return success_response(request, await _service.submit(body.root))


@router.post("/voice/start")
async def voice_start(body: VoiceStartRequest, request: Request) -> ApiResponse:
    await _voice.start(body.guild_id, body.platform_user_id, body.display_name)
    return success_response(request, {"tracking": True})


@router.post("/voice/stop")
async def voice_stop(body: VoiceStopRequest, request: Request) -> ApiResponse:
    return success_response(request, await _voice.stop(body.guild_id, body.platform_user_id))
