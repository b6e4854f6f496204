"""AdminService — privileged mutations behind the admin service token.

Every mutation that changes a balance or removes holdings ends in a ledger
recompute for the affected participants. The one exception is an explicit
net worth overwrite: it is stored and published as given and stays in place
until the next recompute touching that participant (a trade, a price move of
something they hold, or the hourly resync).
"""

import logging
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from src.ss_common.datetime_utils import utc_now
from src.ss_common.enums import ModifierKind
from src.ss_common.errors import (
    InvalidAdminUpdateError,
    ParticipantNotFoundError,
    ValuationNotFoundError,
)
from src.ss_common.money import to_money
from src.ss_ingest.application.voice import VoiceTracker
from src.ss_leaderboard.infrastructure.store import LeaderboardStore
from src.ss_market.application.ledger import NetWorthLedger
from src.ss_market.application.schemas import (
    AdminParticipantUpdate,
    AdminUpdateResponse,
    ModifierResponse,
    PurgeGuildResponse,
    RemoveMemberResponse,
)
from src.ss_market.domain.models import LeaderboardEntry
from src.ss_market.domain.repository import ParticipantRepositoryProtocol
from src.ss_market.infrastructure.persistence import ParticipantRepository

logger = logging.getLogger(__name__)


class AdminService:
    def __init__(
        self,
        repo: ParticipantRepositoryProtocol | None = None,
        store: LeaderboardStore | None = None,
        ledger: NetWorthLedger | None = None,
        voice: VoiceTracker | None = None,
    ) -> None:
        self._repo: ParticipantRepositoryProtocol = repo or ParticipantRepository()
        self._store = store or LeaderboardStore()
        self._ledger = ledger or NetWorthLedger(self._repo, self._store)
        self._voice = voice or VoiceTracker()

    async def update_participant(
        self, db: AsyncSession, participant_id: str, body: AdminParticipantUpdate
    ) -> AdminUpdateResponse:
        if body.balance is None and body.net_worth is None:
            raise InvalidAdminUpdateError("nothing to update")

        try:
            participant = await self._repo.get_participant_by_id(
                db, participant_id, for_update=True
            )
            if participant is None:
                raise ParticipantNotFoundError(participant_id)

            balance = participant.balance
            if body.balance is not None:
                balance = to_money(body.balance)
                await self._repo.set_balance(db, participant.id, balance)

            if body.net_worth is not None:
                net_worth = to_money(body.net_worth)
                await self._repo.update_net_worths(db, {participant.id: net_worth})
                entries = [
                    LeaderboardEntry(
                        guild_id=participant.guild_id,
                        participant_id=participant.id,
                        display_name=participant.display_name,
                        net_worth=net_worth,
                    )
                ]
            else:
                entries = await self._ledger.recompute(db, [participant.id])
                net_worth = entries[0].net_worth

            await self._ledger.publish(entries)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Admin update %s: balance=%s net_worth=%s", participant_id, balance, net_worth
        )
        return AdminUpdateResponse(
            participant_id=participant_id,
            balance=str(balance),
            net_worth=str(to_money(net_worth)),
        )

    async def apply_modifier(
        self,
        db: AsyncSession,
        participant_id: str,
        kind: ModifierKind,
        duration_minutes: int,
    ) -> ModifierResponse:
        expires_at = utc_now() + timedelta(minutes=duration_minutes)
        try:
            participant = await self._repo.get_participant_by_id(db, participant_id)
            if participant is None:
                raise ParticipantNotFoundError(participant_id)
            if kind == ModifierKind.GROWTH_FREEZE:
                if participant.valuation is None:
                    raise ValuationNotFoundError(participant_id)
                await self._repo.set_frozen_until(db, participant.valuation.id, expires_at)
            else:
                await self._repo.upsert_modifier(db, participant.id, kind, expires_at)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Modifier %s on %s until %s", kind.value, participant_id, expires_at)
        return ModifierResponse(
            participant_id=participant_id, kind=kind, expires_at=expires_at.isoformat()
        )

    async def remove_member(
        self, db: AsyncSession, guild_id: str, platform_user_id: str
    ) -> RemoveMemberResponse:
        """Delete a departed member; holders of their valuation lose those units."""
        await self._voice.discard(guild_id, platform_user_id)
        try:
            participant = await self._repo.get_participant(
                db, guild_id, platform_user_id, for_update=True
            )
            if participant is None:
                raise ParticipantNotFoundError(f"{guild_id}:{platform_user_id}")

            holders: list[str] = []
            if participant.valuation is not None:
                holders = await self._ledger.affected_participants(
                    db, [participant.valuation.id]
                )
                holders = [h for h in holders if h != participant.id]

            await self._repo.delete_participant(db, guild_id, platform_user_id)
            entries = await self._ledger.recompute(db, holders)
            await self._store.remove(guild_id, participant.id)
            await self._ledger.publish(entries)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Removed member %s from guild %s (%d holders recomputed)",
            participant.id, guild_id, len(entries),
        )
        return RemoveMemberResponse(
            participant_id=participant.id, holders_recomputed=len(entries)
        )

    async def purge_guild(self, db: AsyncSession, guild_id: str) -> PurgeGuildResponse:
        try:
            removed = await self._repo.delete_guild(db, guild_id)
            await self._store.drop_guild(guild_id, removed)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        await self._voice.purge_guild(guild_id)
        logger.info("Purged guild %s (%d participants)", guild_id, len(removed))
        return PurgeGuildResponse(guild_id=guild_id, participants_removed=len(removed))
