"""
Trade lifecycle: gate -> size -> submit -> monitor -> close.

Every opened trade gets its own exit monitor polling the venue price.
A trade leaves the market on the first of:

  - timeout          held for ``trade_duration_seconds``
  - price_corrected  quote back within ``correction_tolerance`` of fair
  - stop_loss        quote moved ``stop_loss_pct`` against the entry
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Callable, Optional, Protocol

from .database import Database
from .models import Trade, TradeSide, TradeStatus, utcnow
from .portfolio import PortfolioLedger
from .tasks import PeriodicTask

logger = logging.getLogger(__name__)

DEFAULT_MAX_POSITION_SIZE = 0.01
DEFAULT_TRADE_DURATION_SECONDS = 30.0
DEFAULT_EXIT_POLL_SECONDS = 1.0
DEFAULT_STOP_LOSS_PCT = 0.05
DEFAULT_CORRECTION_TOLERANCE = 0.01
MIN_POSITION_SIZE = 1.0

EXIT_TIMEOUT = "timeout"
EXIT_PRICE_CORRECTED = "price_corrected"
EXIT_STOP_LOSS = "stop_loss"


# ── Venue protocols ──────────────────────────────────────────────────

class PriceSource(Protocol):
    async def get_price(self, market_id: str) -> Optional[float]:
        """Current quoted YES price in (0, 1), or None when unavailable."""
        ...


class OrderVenue(Protocol):
    async def submit_order(
        self, market_id: str, side: TradeSide, amount: float, price: float
    ) -> Optional[str]:
        """Place an order and return its id, or None on failure."""
        ...


# ── Manager ──────────────────────────────────────────────────────────

class TradeLifecycleManager:
    def __init__(
        self,
        db: Database,
        ledger: PortfolioLedger,
        prices: PriceSource,
        venue: OrderVenue,
        *,
        max_position_size: float = DEFAULT_MAX_POSITION_SIZE,
        trade_duration_seconds: float = DEFAULT_TRADE_DURATION_SECONDS,
        exit_poll_seconds: float = DEFAULT_EXIT_POLL_SECONDS,
        stop_loss_pct: float = DEFAULT_STOP_LOSS_PCT,
        correction_tolerance: float = DEFAULT_CORRECTION_TOLERANCE,
        allow_concurrent_per_match: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.ledger = ledger
        self.prices = prices
        self.venue = venue
        self.max_position_size = max_position_size
        self.trade_duration_seconds = trade_duration_seconds
        self.exit_poll_seconds = exit_poll_seconds
        self.stop_loss_pct = stop_loss_pct
        self.correction_tolerance = correction_tolerance
        self.allow_concurrent_per_match = allow_concurrent_per_match
        self.clock = clock
        self._monitors: dict[str, PeriodicTask] = {}
        self._opening: set[str] = set()

    # ── Entry ────────────────────────────────────────────────────────

    async def open(
        self,
        match_id: str,
        market_id: str,
        side: TradeSide,
        entry_price: float,
        fair_price: float,
    ) -> Optional[str]:
        """Open a position.  Returns the trade id, or None if nothing was traded."""
        if not self.allow_concurrent_per_match:
            # Claimed before the first await so a second open for the match sees it
            if match_id in self._opening:
                logger.info("Match %s already has a trade being opened, skipping", match_id)
                return None
            self._opening.add(match_id)
        try:
            return await self._open(match_id, market_id, side, entry_price, fair_price)
        finally:
            self._opening.discard(match_id)

    async def _open(
        self,
        match_id: str,
        market_id: str,
        side: TradeSide,
        entry_price: float,
        fair_price: float,
    ) -> Optional[str]:
        if not self.allow_concurrent_per_match:
            if await self.db.list_trades(status=TradeStatus.OPEN, match_id=match_id):
                logger.info("Match %s already has an open trade, skipping", match_id)
                return None

        reservation = await self.ledger.reserve(self.max_position_size, MIN_POSITION_SIZE)
        if reservation is None:
            logger.info("Trading disabled due to limits or cooldown")
            return None
        ledger_date, size = reservation

        try:
            order_id = await self.venue.submit_order(market_id, side, size, entry_price)
        except Exception as e:
            logger.error("Order submission failed for market %s: %s", market_id, e)
            order_id = None
        if not order_id:
            logger.error("Failed to place order on market %s", market_id)
            await self.ledger.release(ledger_date, size)
            return None

        trade = Trade(
            trade_id=uuid.uuid4().hex,
            match_id=match_id,
            market_id=market_id,
            side=side,
            entry_price=entry_price,
            size=size,
            fair_price=fair_price,
            opened_at=self.clock(),
            ledger_date=ledger_date,
            entry_reason=(
                f"Arbitrage: fair price {fair_price:.3f}, market price {entry_price:.3f} "
                f"(order {order_id})"
            ),
        )
        await self.db.insert_trade(trade)
        self._start_monitor(trade)

        logger.info(
            "Trade opened: %s - %s $%.2f @ %.3f (fair %.3f)",
            trade.trade_id, side.value, size, entry_price, fair_price,
        )
        return trade.trade_id

    # ── Exit monitoring ──────────────────────────────────────────────

    def exit_reason(self, trade: Trade, current_price: Optional[float], now: datetime) -> Optional[str]:
        """Which exit rule, if any, fires for ``trade`` at ``now``."""
        elapsed = (now - trade.opened_at).total_seconds()
        if elapsed >= self.trade_duration_seconds:
            return EXIT_TIMEOUT
        if current_price is None:
            return None

        if abs(current_price - trade.fair_price) < self.correction_tolerance:
            return EXIT_PRICE_CORRECTED

        loss_threshold = trade.entry_price * (1 - self.stop_loss_pct)
        if trade.side == TradeSide.YES and current_price < loss_threshold:
            return EXIT_STOP_LOSS
        if trade.side == TradeSide.NO and current_price > 1 - loss_threshold:
            return EXIT_STOP_LOSS
        return None

    def _start_monitor(self, trade: Trade) -> None:
        trade_id = trade.trade_id

        async def tick() -> bool:
            return await self._check_exit(trade_id)

        task = PeriodicTask(f"exit-{trade_id[:8]}", self.exit_poll_seconds, tick)
        self._monitors[trade_id] = task
        task.start()

    async def _check_exit(self, trade_id: str) -> bool:
        """One monitor tick.  Returns False once the trade is no longer open."""
        trade = await self.db.get_trade(trade_id)
        if trade is None or not trade.is_open:
            self._monitors.pop(trade_id, None)
            return False

        now = self.clock()
        if (now - trade.opened_at).total_seconds() >= self.trade_duration_seconds:
            reason: Optional[str] = EXIT_TIMEOUT
        else:
            price = await self.prices.get_price(trade.market_id)
            if price is None:
                logger.debug("No price for %s, skipping exit check", trade.market_id)
                return True
            reason = self.exit_reason(trade, price, now)

        if reason is None:
            return True
        if await self.close(trade_id, reason) is None:
            return True
        self._monitors.pop(trade_id, None)
        return False

    # ── Exit ─────────────────────────────────────────────────────────

    async def close(self, trade_id: str, reason: str) -> Optional[Trade]:
        """
        Close an open trade at the current venue price.

        Returns the closed trade, or None when the trade is unknown,
        already closed, or no price is available right now.
        """
        trade = await self.db.get_trade(trade_id)
        if trade is None or not trade.is_open:
            return None

        exit_price = await self.prices.get_price(trade.market_id)
        if exit_price is None:
            logger.error("Cannot exit trade %s: no market data", trade_id)
            return None

        closed_at = self.clock()
        pnl = trade.profit_loss(exit_price)
        duration = (closed_at - trade.opened_at).total_seconds()

        if not await self.db.close_trade(
            trade_id,
            exit_price=exit_price,
            pnl=pnl,
            exit_reason=reason,
            closed_at=closed_at,
            duration_seconds=duration,
        ):
            # Another task closed it first
            return None

        await self.ledger.record_close(trade.size, pnl, opened_on=trade.ledger_date)

        trade.status = TradeStatus.CLOSED
        trade.exit_price = exit_price
        trade.pnl = pnl
        trade.exit_reason = reason
        trade.closed_at = closed_at
        trade.duration_seconds = duration

        logger.info("Trade closed: %s - P&L: %+.2f, Reason: %s", trade_id, pnl, reason)
        return trade

    # ── Housekeeping ─────────────────────────────────────────────────

    def open_trade_ids(self) -> set[str]:
        return set(self._monitors)

    async def shutdown(self) -> None:
        """Stop all exit monitors.  Open trades stay open in the store."""
        monitors = list(self._monitors.values())
        self._monitors.clear()
        for task in monitors:
            await task.cancel()
