"""
Venue adapters used by the trade lifecycle.

``ClobPriceSource`` reads the quoted YES price for a market token from
the CLOB.  ``PaperVenue`` fills orders immediately at the quoted price
and keeps them in memory, like the paper portfolio it replaces.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import httpx

from . import clob
from ..bot.models import TradeSide, utcnow

logger = logging.getLogger(__name__)


class ClobPriceSource:
    """Quoted price of a market token, or None when unavailable."""

    def __init__(self, side: str = "buy"):
        self.side = side

    async def get_price(self, market_id: str) -> Optional[float]:
        try:
            resp = await clob.get_price(market_id, self.side)
            price = float(resp.get("price", 0))
        except (httpx.HTTPError, TypeError, ValueError) as e:
            logger.warning("Error fetching price for market %s: %s", market_id, e)
            return None
        if not clob.is_valid_price(price):
            logger.debug("Ignoring out-of-range price %.4f for %s", price, market_id)
            return None
        return price


@dataclass
class PaperOrder:
    order_id: str
    market_id: str
    side: TradeSide
    amount: float
    price: float
    placed_at: datetime = field(default_factory=utcnow)


class PaperVenue:
    """Synchronous-fill venue for paper trading."""

    def __init__(self) -> None:
        self.orders: list[PaperOrder] = []

    async def submit_order(
        self, market_id: str, side: TradeSide, amount: float, price: float
    ) -> Optional[str]:
        if amount <= 0 or not clob.is_valid_price(price):
            logger.error("Rejected order: %s $%.2f @ %.3f", side.value, amount, price)
            return None
        order = PaperOrder(
            order_id=uuid.uuid4().hex,
            market_id=market_id,
            side=side,
            amount=amount,
            price=price,
        )
        self.orders.append(order)
        logger.info(
            "Order placed: %s $%.2f @ %.3f on market %s", side.value, amount, price, market_id
        )
        return order.order_id
