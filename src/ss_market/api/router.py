"""ss_market REST API — participant queries, the market board and trading."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ss_common.database import get_db_session
from src.ss_common.response import ApiResponse, success_response
from src.ss_market.application.market_service import MarketService
from src.ss_market.application.participant_service import ParticipantService
from src.ss_market.application.schemas import RenameTickerRequest, TradeRequest
from src.ss_market.application.trade_service import TradeService

router = APIRouter(tags=["market"])

_participants = ParticipantService()
_trades = TradeService()
_market = MarketService()


@router.get("/participants/{guild_id}/{platform_user_id}")
async def get_participant(
    guild_id: str,
    platform_user_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _participants.get_snapshot(db, guild_id, platform_user_id)
    return success_response(request, data)


@router.get("/participants/{guild_id}/{platform_user_id}/price-history")
async def get_price_history(
    guild_id: str,
    platform_user_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(50, ge=1, le=500, description="Most recent points first"),
) -> ApiResponse:
    data = await _participants.get_price_history(db, guild_id, platform_user_id, limit)
    return success_response(request, data)


@router.get("/market/{guild_id}")
async def list_market(
    guild_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    page: int = Query(1, ge=1, description="1-based; past the end shows the last page"),
) -> ApiResponse:
    return success_response(request, await _market.list_market(db, guild_id, page))


@router.get("/market/{guild_id}/{platform_user_id}/majority-shareholder")
async def get_majority_shareholder(
    guild_id: str,
    platform_user_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _market.get_majority_shareholder(db, guild_id, platform_user_id)
    return success_response(request, data)


@router.post("/market/{guild_id}/buy")
async def buy(
    guild_id: str,
    body: TradeRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _trades.buy(
        db, guild_id, body.platform_user_id, body.target_user_id, body.units, body.max_price
    )
    return success_response(request, data)


@router.post("/market/{guild_id}/sell")
async def sell(
    guild_id: str,
    body: TradeRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _trades.sell(
        db, guild_id, body.platform_user_id, body.target_user_id, body.units
    )
    return success_response(request, data)


@router.post("/market/{guild_id}/rename-ticker")
async def rename_ticker(
    guild_id: str,
    body: RenameTickerRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _market.rename_ticker(
        db, guild_id, body.platform_user_id, body.target_user_id, body.new_symbol
    )
    return success_response(request, data)
