"""NetWorthLedger — the single path that derives and publishes net worth.

    net_worth = balance + sum(units * current_price)

Every change to a price, a balance or a unit count ends in `recompute()` for
the affected participants, and `publish()` is the only writer of leaderboard
scores. The two steps are split so the caller decides where the store commit
falls relative to the leaderboard write.
"""

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.ss_leaderboard.infrastructure.store import LeaderboardStore
from src.ss_market.domain.models import LeaderboardEntry
from src.ss_market.domain.net_worth import derive_entries
from src.ss_market.domain.repository import ParticipantRepositoryProtocol
from src.ss_market.infrastructure.persistence import ParticipantRepository

logger = logging.getLogger(__name__)


class NetWorthLedger:
    def __init__(
        self,
        repo: ParticipantRepositoryProtocol | None = None,
        store: LeaderboardStore | None = None,
    ) -> None:
        self._repo: ParticipantRepositoryProtocol = repo or ParticipantRepository()
        self._store = store or LeaderboardStore()

    async def affected_participants(
        self,
        db: AsyncSession,
        valuation_ids: Iterable[str],
        owner_ids: Iterable[str] = (),
    ) -> list[str]:
        """Owners plus every holder of any of the given valuations, sorted."""
        ids = set(owner_ids)
        ids.update(await self._repo.list_holder_ids(db, list(valuation_ids)))
        return sorted(ids)

    async def recompute(
        self,
        db: AsyncSession,
        participant_ids: Iterable[str],
        price_overrides: Mapping[str, Decimal] | None = None,
    ) -> list[LeaderboardEntry]:
        """Derive and store net worth inside the caller's transaction."""
        ids = sorted(set(participant_ids))
        if not ids:
            return []
        inputs = await self._repo.load_net_worth_inputs(db, ids)
        entries = derive_entries(inputs, price_overrides)
        await self._repo.update_net_worths(
            db, {e.participant_id: e.net_worth for e in entries}
        )
        return entries

    async def publish(self, entries: list[LeaderboardEntry]) -> None:
        written = await self._store.upsert(entries)
        if written:
            logger.debug("Published %d leaderboard entries", written)
