"""DecayService — periodic price decay for idle valuations.

A valuation is idle when no scored activity has touched it for
DECAY_IDLE_MINUTES. Each sweep multiplies its price by (1 - DECAY_RATE),
floored at 1.00; frozen valuations are skipped. last_activity_at is not
touched, so an idle valuation keeps decaying on every sweep.

Candidates are paged by id, one transaction per page, with
FOR UPDATE SKIP LOCKED so a concurrent flush is never blocked.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import settings
from src.ss_common.database import async_session_factory
from src.ss_common.datetime_utils import utc_now
from src.ss_market.application.ledger import NetWorthLedger
from src.ss_market.domain.pricer import apply_decay
from src.ss_market.domain.repository import ParticipantRepositoryProtocol
from src.ss_market.infrastructure.persistence import ParticipantRepository

logger = logging.getLogger(__name__)


@dataclass
class DecayResult:
    scanned: int = 0
    decayed: int = 0
    participants_recomputed: int = 0


class DecayService:
    def __init__(
        self,
        repo: ParticipantRepositoryProtocol | None = None,
        ledger: NetWorthLedger | None = None,
        session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
        decay_rate: Decimal = settings.DECAY_RATE,
        idle_minutes: int = settings.DECAY_IDLE_MINUTES,
        batch_size: int = settings.DECAY_BATCH_SIZE,
    ) -> None:
        self._repo: ParticipantRepositoryProtocol = repo or ParticipantRepository()
        self._ledger = ledger or NetWorthLedger(self._repo)
        self._session_factory = session_factory
        self._decay_rate = decay_rate
        self._idle_minutes = idle_minutes
        self._batch_size = batch_size

    async def run(self) -> DecayResult:
        result = DecayResult()
        idle_before = utc_now() - timedelta(minutes=self._idle_minutes)
        after_id: str | None = None

        while True:
            async with self._session_factory() as db:
                try:
                    page = await self._decay_page(db, idle_before, after_id, result)
                    await db.commit()
                except Exception:
                    await db.rollback()
                    raise
            if page is None:
                break
            after_id = page

        logger.info(
            "Decay sweep: scanned=%d decayed=%d recomputed=%d",
            result.scanned, result.decayed, result.participants_recomputed,
        )
        return result

    async def _decay_page(
        self,
        db: AsyncSession,
        idle_before: datetime,
        after_id: str | None,
        result: DecayResult,
    ) -> str | None:
        """Decay one page. Returns the cursor for the next page, or None when done."""
        candidates = await self._repo.list_decay_candidates(
            db, idle_before, after_id, self._batch_size
        )
        if not candidates:
            return None
        result.scanned += len(candidates)

        now = utc_now()
        prices: dict[str, Decimal] = {}
        owners: list[str] = []
        for v in candidates:
            frozen = v.frozen_until is not None and v.frozen_until > now
            new_price = apply_decay(v.current_price, self._decay_rate, frozen)
            if new_price != v.current_price:
                prices[v.id] = new_price
                owners.append(v.participant_id)

        if prices:
            await self._repo.update_valuation_prices(db, prices, activity=False)
            await self._repo.append_price_history(db, prices)
            affected = await self._ledger.affected_participants(db, prices, owners)
            entries = await self._ledger.recompute(db, affected, prices)
            await self._ledger.publish(entries)
            result.decayed += len(prices)
            result.participants_recomputed += len(entries)

        if len(candidates) < self._batch_size:
            return None
        return candidates[-1].id
