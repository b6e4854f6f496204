"""TradeService — acquisition and disposal of units in a participant's valuation.

Both operations run in one store transaction that locks the trader row, then
the holding row. The trader's net worth is re-derived through the ledger
before the commit; a failed trade rolls back with no partial state.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ss_common.enums import TradeSide
from src.ss_common.errors import (
    InsufficientBalanceError,
    InsufficientHoldingError,
    ParticipantNotFoundError,
    PriceBoundExceededError,
    SelfTradeError,
    ValuationNotFoundError,
)
from src.ss_common.money import money_to_display, to_money
from src.ss_market.application.ledger import NetWorthLedger
from src.ss_market.application.schemas import TradeResponse
from src.ss_market.domain.models import Holding, Participant, Valuation
from src.ss_market.domain.repository import ParticipantRepositoryProtocol
from src.ss_market.infrastructure.persistence import ParticipantRepository

logger = logging.getLogger(__name__)

_AVERAGE_PRICE_QUANT = Decimal("0.0001")


def weighted_average_price(
    old_units: int, old_average: Decimal, new_units: int, price: Decimal
) -> Decimal:
    total_units = old_units + new_units
    total_cost = old_average * old_units + price * new_units
    return (total_cost / total_units).quantize(_AVERAGE_PRICE_QUANT, rounding=ROUND_HALF_UP)


class TradeService:
    def __init__(
        self,
        repo: ParticipantRepositoryProtocol | None = None,
        ledger: NetWorthLedger | None = None,
        sell_tax_rate: Decimal = settings.SELL_TAX_RATE,
    ) -> None:
        self._repo: ParticipantRepositoryProtocol = repo or ParticipantRepository()
        self._ledger = ledger or NetWorthLedger(self._repo)
        self._sell_tax_rate = sell_tax_rate

    async def _load_parties(
        self, db: AsyncSession, guild_id: str, trader_uid: str, target_uid: str
    ) -> tuple[Participant, Valuation]:
        trader = await self._repo.get_participant(db, guild_id, trader_uid, for_update=True)
        if trader is None:
            raise ParticipantNotFoundError(f"{guild_id}:{trader_uid}")
        target = await self._repo.get_participant(db, guild_id, target_uid)
        if target is None or target.valuation is None:
            raise ValuationNotFoundError(f"{guild_id}:{target_uid}")
        if target.id == trader.id:
            raise SelfTradeError()
        return trader, target.valuation

    async def buy(
        self,
        db: AsyncSession,
        guild_id: str,
        buyer_uid: str,
        target_uid: str,
        units: int,
        max_price: Decimal | None = None,
    ) -> TradeResponse:
        try:
            buyer, valuation = await self._load_parties(db, guild_id, buyer_uid, target_uid)
            price = valuation.current_price
            if max_price is not None and price > max_price:
                raise PriceBoundExceededError(price, max_price)

            cost = to_money(price * units)
            if buyer.balance < cost:
                raise InsufficientBalanceError(cost, buyer.balance)

            holding = await self._repo.get_holding(db, buyer.id, valuation.id, for_update=True)
            if holding is None:
                holding = Holding(
                    holder_id=buyer.id,
                    valuation_id=valuation.id,
                    units=units,
                    average_price=price,
                )
            else:
                holding.average_price = weighted_average_price(
                    holding.units, holding.average_price, units, price
                )
                holding.units += units

            new_balance = buyer.balance - cost
            await self._repo.set_balance(db, buyer.id, new_balance)
            await self._repo.save_holding(db, holding)
            await self._repo.record_trade(
                db, buyer.id, valuation.id, TradeSide.BUY, units, price, cost
            )
            entries = await self._ledger.recompute(db, [buyer.id])
            await self._ledger.publish(entries)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "BUY %s x%d @ %s by %s (guild %s)", valuation.symbol, units, price, buyer.id, guild_id
        )
        return TradeResponse(
            side=TradeSide.BUY,
            symbol=valuation.symbol,
            units=units,
            price_per_unit=str(price),
            gross=str(cost),
            tax="0.00",
            total=str(cost),
            total_display=money_to_display(cost),
            balance=str(to_money(new_balance)),
            net_worth=str(to_money(entries[0].net_worth)) if entries else str(new_balance),
            units_held=holding.units,
        )

    async def sell(
        self,
        db: AsyncSession,
        guild_id: str,
        seller_uid: str,
        target_uid: str,
        units: int,
    ) -> TradeResponse:
        try:
            seller, valuation = await self._load_parties(db, guild_id, seller_uid, target_uid)
            holding = await self._repo.get_holding(db, seller.id, valuation.id, for_update=True)
            owned = holding.units if holding else 0
            if holding is None or owned < units:
                raise InsufficientHoldingError(units, owned)

            price = valuation.current_price
            gross = to_money(price * units)
            tax = to_money(gross * self._sell_tax_rate)
            proceeds = gross - tax
            profit = proceeds - to_money(holding.average_price * units)

            holding.units -= units
            if holding.units == 0:
                await self._repo.delete_holding(db, seller.id, valuation.id)
            else:
                await self._repo.save_holding(db, holding)

            new_balance = seller.balance + proceeds
            await self._repo.set_balance(db, seller.id, new_balance)
            await self._repo.record_trade(
                db, seller.id, valuation.id, TradeSide.SELL, units, price, proceeds
            )
            entries = await self._ledger.recompute(db, [seller.id])
            await self._ledger.publish(entries)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "SELL %s x%d @ %s by %s (guild %s, tax %s)",
            valuation.symbol, units, price, seller.id, guild_id, tax,
        )
        return TradeResponse(
            side=TradeSide.SELL,
            symbol=valuation.symbol,
            units=units,
            price_per_unit=str(price),
            gross=str(gross),
            tax=str(tax),
            total=str(proceeds),
            total_display=money_to_display(proceeds),
            profit=str(profit),
            balance=str(to_money(new_balance)),
            net_worth=str(to_money(entries[0].net_worth)) if entries else str(new_balance),
            units_held=holding.units,
        )
