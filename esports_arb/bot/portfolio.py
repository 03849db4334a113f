"""
Daily portfolio risk ledger.

One ``LedgerDay`` row per UTC date gates every new trade:

  - cumulative exposure capped at ``starting_balance * max_daily_risk``
    (trading stays off for the rest of the day once hit);
  - ``stop_loss_trigger`` consecutive losing trades start a cooldown;
  - no entries while the cooldown is running.

All counter updates go through single UPDATE statements in
``Database`` so concurrent trade closes never lose an update.
New positions go through ``reserve``, which holds the ledger lock across
the gate, the sizing and the exposure booking, so concurrent entries
cannot all pass the gate at the same exposure.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from .database import Database
from .models import LedgerDay, utcnow

logger = logging.getLogger(__name__)

DEFAULT_SEED_BALANCE = 1000.0
DEFAULT_MAX_DAILY_RISK = 0.05
DEFAULT_STOP_LOSS_TRIGGER = 3
DEFAULT_COOLDOWN_MINUTES = 10


class PortfolioLedger:
    """Manages the per-day risk state shared by all trades."""

    def __init__(
        self,
        db: Database,
        *,
        seed_balance: float = DEFAULT_SEED_BALANCE,
        max_daily_risk: float = DEFAULT_MAX_DAILY_RISK,
        stop_loss_trigger: int = DEFAULT_STOP_LOSS_TRIGGER,
        cooldown_minutes: float = DEFAULT_COOLDOWN_MINUTES,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.seed_balance = seed_balance
        self.max_daily_risk = max_daily_risk
        self.stop_loss_trigger = stop_loss_trigger
        self.cooldown = timedelta(minutes=cooldown_minutes)
        self.clock = clock
        self._lock = asyncio.Lock()

    @staticmethod
    def day_key(now: datetime) -> str:
        return now.date().isoformat()

    async def today(self) -> LedgerDay:
        """Return today's ledger, rolling over from the previous day if needed."""
        key = self.day_key(self.clock())
        day = await self.db.get_ledger(key)
        if day is not None:
            return day

        previous = await self.db.latest_ledger_before(key)
        balance = previous.current_balance if previous else self.seed_balance
        if await self.db.create_ledger(
            LedgerDay(date=key, starting_balance=balance, current_balance=balance)
        ):
            if previous:
                logger.info(
                    "Daily portfolio rollover: %s closed at $%.2f (P&L: $%+.2f)",
                    previous.date, previous.current_balance, previous.daily_pnl,
                )
            logger.info("Opened ledger for %s with $%.2f", key, balance)
        return await self.db.get_ledger(key)

    async def can_trade(self) -> bool:
        async with self._lock:
            return await self._gate()

    async def _gate(self) -> bool:
        """Check daily limits in order: exposure cap, loss streak, cooldown, flag."""
        now = self.clock()
        day = await self.today()

        if day.risk_exposure >= day.max_exposure(self.max_daily_risk):
            if not day.risk_capped:
                logger.warning(
                    "Daily risk limit reached ($%.2f >= $%.2f). Trading disabled for %s.",
                    day.risk_exposure, day.max_exposure(self.max_daily_risk), day.date,
                )
                await self.db.ledger_set_state(
                    day.date, trading_enabled=False, risk_capped=True, cooldown_until=None,
                )
            return False

        if day.consecutive_losses >= self.stop_loss_trigger and not day.risk_capped:
            until = now + self.cooldown
            logger.warning(
                "Consecutive losses: %d. Entering cooldown until %s.",
                day.consecutive_losses, until.isoformat(timespec="seconds"),
            )
            await self.db.ledger_set_state(
                day.date,
                trading_enabled=False,
                risk_capped=False,
                cooldown_until=until,
                reset_losses=True,
            )
            return False

        if day.in_cooldown(now):
            return False

        if day.cooldown_until is not None and not day.risk_capped:
            logger.info("Cooldown elapsed. Trading re-enabled.")
            await self.db.ledger_set_state(
                day.date, trading_enabled=True, risk_capped=False, cooldown_until=None,
            )
            return True

        return day.trading_enabled

    async def record_open(self, size: float) -> None:
        day = await self.today()
        await self.db.ledger_record_open(day.date, size)

    async def reserve(self, fraction: float, min_size: float = 0.0) -> Optional[tuple[str, float]]:
        """
        Gate, size and book a new position in one step.

        Returns ``(ledger date, size)`` with the exposure already booked, or
        None when limits forbid trading or the stake would be below
        ``min_size``.  Undo with ``release`` if the order is never filled.
        """
        async with self._lock:
            if not await self._gate():
                return None
            day = await self.today()
            size = day.current_balance * fraction
            if size < min_size:
                logger.warning("Position size too small: $%.2f", size)
                return None
            if not await self.db.ledger_reserve(
                day.date, size, day.max_exposure(self.max_daily_risk)
            ):
                return None
            return day.date, size

    async def release(self, date: str, size: float) -> None:
        """Return an unfilled reservation."""
        await self.db.ledger_release(date, size, cancel=True)

    async def record_close(self, size: float, pnl: float, opened_on: Optional[str] = None) -> None:
        """
        Book a closed trade's P&L on today's ledger.  Its exposure is
        released on ``opened_on``, the day that booked it, when that differs.
        """
        day = await self.today()
        if opened_on is None or opened_on == day.date:
            await self.db.ledger_record_close(day.date, size, pnl)
        else:
            await self.db.ledger_record_close(day.date, 0.0, pnl)
            await self.db.ledger_release(opened_on, size)
        logger.debug("Ledger %s: closed size $%.2f with P&L $%+.2f", day.date, size, pnl)

    async def position_size(self, fraction: float) -> float:
        """Stake for a new position as a fraction of the current balance."""
        day = await self.today()
        return day.current_balance * fraction
