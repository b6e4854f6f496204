"""ParticipantService — read-only participant queries.

No explicit transaction; each call is a couple of plain SELECTs.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from src.ss_common.datetime_utils import utc_now
from src.ss_common.errors import ParticipantNotFoundError, ValuationNotFoundError
from src.ss_market.application.schemas import (
    ParticipantSnapshot,
    PriceHistoryResponse,
    PricePointItem,
)
from src.ss_market.domain.repository import ParticipantRepositoryProtocol
from src.ss_market.infrastructure.persistence import ParticipantRepository


class ParticipantService:
    def __init__(self, repo: ParticipantRepositoryProtocol | None = None) -> None:
        self._repo: ParticipantRepositoryProtocol = repo or ParticipantRepository()

    async def get_snapshot(
        self, db: AsyncSession, guild_id: str, platform_user_id: str
    ) -> ParticipantSnapshot:
        participant = await self._repo.get_participant(db, guild_id, platform_user_id)
        if participant is None:
            raise ParticipantNotFoundError(f"{guild_id}:{platform_user_id}")
        holdings = await self._repo.list_holdings(db, participant.id)
        return ParticipantSnapshot.from_domain(participant, holdings, utc_now())

    async def get_price_history(
        self, db: AsyncSession, guild_id: str, platform_user_id: str, limit: int
    ) -> PriceHistoryResponse:
        participant = await self._repo.get_participant(db, guild_id, platform_user_id)
        if participant is None:
            raise ParticipantNotFoundError(f"{guild_id}:{platform_user_id}")
        if participant.valuation is None:
            raise ValuationNotFoundError(f"{guild_id}:{platform_user_id}")
        points = await self._repo.list_price_history(db, participant.valuation.id, limit)
        return PriceHistoryResponse(
            symbol=participant.valuation.symbol,
            items=[PricePointItem.from_domain(p) for p in points],
        )
