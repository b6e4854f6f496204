"""Admin REST API — every route requires an admin service token."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ss_admin.application.service import AdminService
from src.ss_common.database import get_db_session
from src.ss_common.response import ApiResponse, success_response
from src.ss_gateway.auth.dependencies import require_admin
from src.ss_leaderboard.application.service import LeaderboardService
from src.ss_market.application.schemas import (
    AdminParticipantUpdate,
    ModifierRequest,
    ResyncResponse,
)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])

_service = AdminService()
_leaderboard = LeaderboardService()


@router.patch("/participants/{participant_id}")
async def update_participant(
    participant_id: str,
    body: AdminParticipantUpdate,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.update_participant(db, participant_id, body)
    return success_response(request, result)


@router.post("/participants/{participant_id}/modifiers")
async def apply_modifier(
    participant_id: str,
    body: ModifierRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.apply_modifier(
        db, participant_id, body.kind, body.duration_minutes
    )
    return success_response(request, result)


@router.delete("/guilds/{guild_id}/members/{platform_user_id}")
async def remove_member(
    guild_id: str,
    platform_user_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.remove_member(db, guild_id, platform_user_id)
    return success_response(request, result)


@router.delete("/guilds/{guild_id}")
async def purge_guild(
    guild_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.purge_guild(db, guild_id)
    return success_response(request, result)


@router.post("/leaderboard/resync")
async def resync_leaderboard(request: Request) -> ApiResponse:
    synced = await _leaderboard.full_resync()
    return success_response(request, ResyncResponse(participants_synced=synced))
