"""MarketService — the guild market board and majority-shareholder privileges.

The board lists every valuation in a guild by current price, highest first,
a page at a time. The majority shareholder of a valuation is the single
largest holder other than its owner; if the owner would be the largest
holder there is none. Only that holder may rename the valuation's ticker,
for a flat fee taken from their balance.
"""

import logging
import math
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ss_common.errors import (
    InsufficientBalanceError,
    NotMajorityShareholderError,
    ParticipantNotFoundError,
    ValuationNotFoundError,
)
from src.ss_common.money import to_money
from src.ss_market.application.ledger import NetWorthLedger
from src.ss_market.application.schemas import (
    MajorityShareholderResponse,
    MarketListingItem,
    MarketPageResponse,
    RenameTickerResponse,
    ShareholderItem,
)
from src.ss_market.domain.models import Holding, Participant, Valuation
from src.ss_market.domain.repository import ParticipantRepositoryProtocol
from src.ss_market.infrastructure.persistence import ParticipantRepository

logger = logging.getLogger(__name__)


class MarketService:
    def __init__(
        self,
        repo: ParticipantRepositoryProtocol | None = None,
        ledger: NetWorthLedger | None = None,
        page_size: int = settings.MARKET_PAGE_SIZE,
        rename_fee: Decimal = settings.RENAME_TICKER_FEE,
    ) -> None:
        self._repo: ParticipantRepositoryProtocol = repo or ParticipantRepository()
        self._ledger = ledger or NetWorthLedger(self._repo)
        self._page_size = page_size
        self._rename_fee = rename_fee

    async def list_market(
        self, db: AsyncSession, guild_id: str, page: int = 1
    ) -> MarketPageResponse:
        """A page past the end is clamped to the last page."""
        total = await self._repo.count_guild_valuations(db, guild_id)
        total_pages = max(1, math.ceil(total / self._page_size))
        page = max(1, min(page, total_pages))
        offset = (page - 1) * self._page_size
        listings = await self._repo.list_guild_valuations(db, guild_id, offset, self._page_size)
        return MarketPageResponse(
            guild_id=guild_id,
            page=page,
            total_pages=total_pages,
            total=total,
            items=[
                MarketListingItem.from_domain(offset + i + 1, listing)
                for i, listing in enumerate(listings)
            ],
        )

    async def _majority_holding(
        self, db: AsyncSession, owner: Participant, valuation: Valuation
    ) -> Holding | None:
        top = await self._repo.get_top_holding(db, valuation.id)
        if top is None or top.holder_id == owner.id:
            return None
        return top

    async def _load_owner(
        self, db: AsyncSession, guild_id: str, platform_user_id: str
    ) -> tuple[Participant, Valuation]:
        owner = await self._repo.get_participant(db, guild_id, platform_user_id)
        if owner is None or owner.valuation is None:
            raise ValuationNotFoundError(f"{guild_id}:{platform_user_id}")
        return owner, owner.valuation

    async def get_majority_shareholder(
        self, db: AsyncSession, guild_id: str, platform_user_id: str
    ) -> MajorityShareholderResponse:
        owner, valuation = await self._load_owner(db, guild_id, platform_user_id)
        top = await self._majority_holding(db, owner, valuation)
        if top is None:
            return MajorityShareholderResponse(symbol=valuation.symbol, shareholder=None)

        holder = await self._repo.get_participant_by_id(db, top.holder_id)
        if holder is None:
            return MajorityShareholderResponse(symbol=valuation.symbol, shareholder=None)
        return MajorityShareholderResponse(
            symbol=valuation.symbol,
            shareholder=ShareholderItem(
                participant_id=holder.id,
                platform_user_id=holder.platform_user_id,
                display_name=holder.display_name,
                units=top.units,
            ),
        )

    async def rename_ticker(
        self,
        db: AsyncSession,
        guild_id: str,
        caller_uid: str,
        target_uid: str,
        new_symbol: str,
    ) -> RenameTickerResponse:
        try:
            caller = await self._repo.get_participant(db, guild_id, caller_uid, for_update=True)
            if caller is None:
                raise ParticipantNotFoundError(f"{guild_id}:{caller_uid}")
            owner, valuation = await self._load_owner(db, guild_id, target_uid)
            old_symbol = valuation.symbol

            top = await self._majority_holding(db, owner, valuation)
            if top is None or top.holder_id != caller.id:
                raise NotMajorityShareholderError(old_symbol)
            if caller.balance < self._rename_fee:
                raise InsufficientBalanceError(self._rename_fee, caller.balance)

            new_balance = caller.balance - self._rename_fee
            await self._repo.set_balance(db, caller.id, new_balance)
            await self._repo.set_symbol(db, valuation.id, new_symbol)
            entries = await self._ledger.recompute(db, [caller.id])
            await self._ledger.publish(entries)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Ticker %s renamed to %s by majority holder %s (guild %s)",
            old_symbol, new_symbol, caller.id, guild_id,
        )
        return RenameTickerResponse(
            old_symbol=old_symbol,
            new_symbol=new_symbol,
            fee=str(to_money(self._rename_fee)),
            balance=str(to_money(new_balance)),
            net_worth=str(to_money(entries[0].net_worth if entries else new_balance)),
        )
