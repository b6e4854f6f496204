"""ss_leaderboard REST API."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ss_common.database import get_db_session
from src.ss_common.response import ApiResponse, success_response
from src.ss_leaderboard.application.service import LeaderboardService

router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])

_service = LeaderboardService()


@router.get("/{guild_id}")
async def get_leaderboard(
    guild_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(10, ge=1, le=100, description="Number of ranks to return"),
) -> ApiResponse:
    return success_response(request, await _service.top(db, guild_id, limit))
