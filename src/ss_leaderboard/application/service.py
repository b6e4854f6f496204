"""LeaderboardService — ranked reads and the full resync.

Reads come from the sorted set; a display name whose cache entry expired is
fetched from the store in one query and re-cached, and "Unknown" is used when
neither has it.

full_resync() walks every participant by id in pages, re-deriving net worth
through the ledger, so stored net worth and ranked scores converge even after
a lost leaderboard write or an evicted key.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import settings
from src.ss_common.database import async_session_factory
from src.ss_common.money import money_to_display, to_money
from src.ss_leaderboard.application.schemas import LeaderboardResponse, LeaderboardRow
from src.ss_leaderboard.infrastructure.store import LeaderboardStore
from src.ss_market.application.ledger import NetWorthLedger
from src.ss_market.domain.repository import ParticipantRepositoryProtocol
from src.ss_market.infrastructure.persistence import ParticipantRepository

logger = logging.getLogger(__name__)

UNKNOWN_NAME = "Unknown"


class LeaderboardService:
    def __init__(
        self,
        repo: ParticipantRepositoryProtocol | None = None,
        store: LeaderboardStore | None = None,
        ledger: NetWorthLedger | None = None,
        session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
        resync_batch_size: int = settings.LEADERBOARD_RESYNC_BATCH_SIZE,
    ) -> None:
        self._repo: ParticipantRepositoryProtocol = repo or ParticipantRepository()
        self._store = store or LeaderboardStore()
        self._ledger = ledger or NetWorthLedger(self._repo, self._store)
        self._session_factory = session_factory
        self._resync_batch_size = resync_batch_size

    async def top(self, db: AsyncSession, guild_id: str, limit: int) -> LeaderboardResponse:
        ranked = await self._store.top(guild_id, limit)
        missing = [r.participant_id for r in ranked if r.display_name is None]
        fallback: dict[str, str] = {}
        if missing:
            fallback = await self._repo.get_display_names(db, missing)
            await self._store.cache_names(fallback)

        items = []
        for r in ranked:
            name = r.display_name or fallback.get(r.participant_id) or UNKNOWN_NAME
            items.append(
                LeaderboardRow(
                    rank=r.rank,
                    participant_id=r.participant_id,
                    display_name=name,
                    net_worth=str(to_money(r.net_worth)),
                    net_worth_display=money_to_display(r.net_worth),
                )
            )
        return LeaderboardResponse(guild_id=guild_id, items=items)

    async def full_resync(self) -> int:
        """Re-derive every participant's net worth. Returns the number synced."""
        synced = 0
        after_id: str | None = None
        while True:
            async with self._session_factory() as db:
                try:
                    ids = await self._repo.list_participant_ids(
                        db, after_id, self._resync_batch_size
                    )
                    if not ids:
                        break
                    entries = await self._ledger.recompute(db, ids)
                    await self._ledger.publish(entries)
                    await db.commit()
                except Exception:
                    await db.rollback()
                    raise
            synced += len(entries)
            after_id = ids[-1]
            if len(ids) < self._resync_batch_size:
                break

        logger.info("Leaderboard resync complete: %d participants", synced)
        return synced
