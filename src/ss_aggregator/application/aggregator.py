"""Aggregator — drains the activity queue and turns a batch into prices.

One flush:
    1. pop up to AGGREGATOR_BATCH_SIZE raw items
    2. validate; malformed items are logged and dropped
    3. group by (guild, user); one batched lookup; create the unseen
       participants and re-read them in the same transaction
    4. score each participant's events, apply the Pricer to nonzero scores
    5. write prices and price history, re-derive net worth for the owners
       and every holder of a repriced valuation, publish leaderboard entries
    6. commit

Any failure after the pop rolls the transaction back and puts the raw batch
back at the head of the queue. Because the commit is the last step, a
replayed batch always starts from the prices it saw the first time.

Only one flush runs per process (FlushState + asyncio.Lock); a flush
requested while one is running is skipped. Flushes in different processes
may overlap: the lookup locks the batch's valuation rows in id order, so two
flushes touching the same participant serialize instead of overwriting each
other's price. When items remain after a flush, whether it succeeded or
failed, a single follow-up flush is scheduled after a short delay.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import settings
from src.ss_aggregator.domain.scoring import derive_symbol, score_batch
from src.ss_common.database import async_session_factory
from src.ss_common.datetime_utils import utc_now
from src.ss_common.enums import FlushState
from src.ss_ingest.domain.events import (
    MessageEvent,
    ReactionEvent,
    VoiceMinuteEvent,
    decode_event,
)
from src.ss_ingest.infrastructure.event_queue import EventQueue
from src.ss_market.application.ledger import NetWorthLedger
from src.ss_market.domain.modifiers import resolve_effective_params
from src.ss_market.domain.pricer import compute_price
from src.ss_market.domain.repository import (
    Identity,
    NewParticipant,
    ParticipantRepositoryProtocol,
)
from src.ss_market.infrastructure.persistence import ParticipantRepository

logger = logging.getLogger(__name__)

Event = MessageEvent | VoiceMinuteEvent | ReactionEvent


@dataclass
class FlushResult:
    drained: int = 0
    invalid: int = 0
    created: int = 0
    scored: int = 0
    repriced: int = 0
    recomputed: int = 0
    skipped: bool = False


class Aggregator:
    def __init__(
        self,
        queue: EventQueue | None = None,
        repo: ParticipantRepositoryProtocol | None = None,
        ledger: NetWorthLedger | None = None,
        session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
        batch_size: int = settings.AGGREGATOR_BATCH_SIZE,
        followup_delay_s: float = settings.AGGREGATOR_FOLLOWUP_DELAY_S,
    ) -> None:
        self._queue = queue or EventQueue()
        self._repo: ParticipantRepositoryProtocol = repo or ParticipantRepository()
        self._ledger = ledger or NetWorthLedger(self._repo)
        self._session_factory = session_factory
        self._batch_size = batch_size
        self._followup_delay_s = followup_delay_s
        self._lock = asyncio.Lock()
        self._state = FlushState.IDLE
        self._followup: asyncio.Task[None] | None = None

    @property
    def state(self) -> FlushState:
        return self._state

    async def flush(self) -> FlushResult:
        if self._lock.locked():
            return FlushResult(skipped=True)

        async with self._lock:
            self._state = FlushState.RUNNING
            try:
                result = await self._flush_once()
            except Exception:
                # the batch went back to the head of the queue; retry it
                await self._followup_if_pending()
                raise
            finally:
                self._state = FlushState.IDLE

        if result.drained:
            await self._followup_if_pending()
        return result

    async def _followup_if_pending(self) -> None:
        try:
            pending = await self._queue.pending()
        except Exception:
            logger.exception("Could not read queue depth, no follow-up flush scheduled")
            return
        if pending > 0:
            self._schedule_followup()

    async def close(self) -> None:
        """Cancel a pending follow-up flush (shutdown)."""
        if self._followup is not None and not self._followup.done():
            self._followup.cancel()
            try:
                await self._followup
            except asyncio.CancelledError:
                pass
        self._followup = None

    def _schedule_followup(self) -> None:
        if self._followup is not None and not self._followup.done():
            return
        self._followup = asyncio.create_task(self._delayed_flush())

    async def _delayed_flush(self) -> None:
        await asyncio.sleep(self._followup_delay_s)
        self._followup = None
        try:
            await self.flush()
        except Exception:
            logger.exception("Follow-up flush failed")

    async def _flush_once(self) -> FlushResult:
        raw = await self._queue.drain_batch(self._batch_size)
        if not raw:
            return FlushResult()

        result = FlushResult(drained=len(raw))
        try:
            async with self._session_factory() as db:
                try:
                    await self._process(db, raw, result)
                    await db.commit()
                except Exception:
                    await db.rollback()
                    raise
        except Exception:
            logger.exception("Flush failed, requeueing %d items", len(raw))
            await self._queue.requeue_front(raw)
            raise

        logger.info(
            "Flushed %d items: invalid=%d created=%d scored=%d repriced=%d recomputed=%d",
            result.drained, result.invalid, result.created,
            result.scored, result.repriced, result.recomputed,
        )
        return result

    def _decode(self, raw: list[str], result: FlushResult) -> dict[Identity, list[Event]]:
        grouped: dict[Identity, list[Event]] = defaultdict(list)
        for item in raw:
            try:
                event = decode_event(item)
            except ValidationError as exc:
                result.invalid += 1
                logger.warning(
                    "Dropping malformed event %.120s: %s", item, exc.errors(include_url=False)
                )
                continue
            grouped[event.identity].append(event)
        return grouped

    async def _process(self, db: AsyncSession, raw: list[str], result: FlushResult) -> None:
        grouped = self._decode(raw, result)
        if not grouped:
            return

        participants = await self._repo.get_participants_by_identities(db, list(grouped))
        missing = [ident for ident in grouped if ident not in participants]
        if missing:
            await self._repo.create_participants(
                db,
                [self._new_participant(ident, grouped[ident]) for ident in missing],
                balance=settings.STARTING_BALANCE,
                price=settings.STARTING_PRICE,
                volatility=settings.STARTING_VOLATILITY,
                units=settings.ISSUED_UNITS,
            )
            participants.update(await self._repo.get_participants_by_identities(db, missing))
            result.created = len(missing)

        now = utc_now()
        prices: dict[str, Decimal] = {}
        touched = [participants[ident].id for ident in missing if ident in participants]
        for ident, events in grouped.items():
            participant = participants.get(ident)
            if participant is None or participant.valuation is None:
                logger.warning("No valuation for %s:%s, skipping %d events", *ident, len(events))
                continue
            params = resolve_effective_params(participant, now)
            score = score_batch(events, params)
            if score <= 0:
                continue
            valuation = participant.valuation
            update = compute_price(valuation.current_price, valuation.volatility, score, params)
            result.scored += 1
            prices[valuation.id] = update.new_price
            touched.append(participant.id)

        if prices:
            await self._repo.update_valuation_prices(db, prices, activity=True)
            await self._repo.append_price_history(db, prices)
            result.repriced = len(prices)

        affected = await self._ledger.affected_participants(db, prices, touched)
        entries = await self._ledger.recompute(db, affected, prices)
        await self._ledger.publish(entries)
        result.recomputed = len(entries)

    @staticmethod
    def _new_participant(ident: Identity, events: list[Event]) -> NewParticipant:
        guild_id, platform_user_id = ident
        name = next((e.display_name for e in events if e.display_name), None) or platform_user_id
        return NewParticipant(
            guild_id=guild_id,
            platform_user_id=platform_user_id,
            display_name=name,
            symbol=derive_symbol(name),
        )
