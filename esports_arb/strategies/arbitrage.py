"""Price-discrepancy arbitrage: trade when fair and quoted prices diverge."""

import logging
from typing import Optional

from .base import BaseStrategy, Opportunity
from ..bot.models import TradeSide

logger = logging.getLogger(__name__)

DEFAULT_MIN_PROFIT_THRESHOLD = 0.02
# Float slack so an edge of exactly the threshold (e.g. 0.57 vs 0.55) counts
EDGE_EPSILON = 1e-9


class ArbitrageDetector(BaseStrategy):
    def __init__(self, min_profit_threshold: float = DEFAULT_MIN_PROFIT_THRESHOLD):
        self.min_profit_threshold = min_profit_threshold

    @property
    def name(self) -> str:
        return f"Arbitrage (min edge {self.min_profit_threshold:.3f})"

    def detect(self, market_price: float, fair_price: float) -> Optional[Opportunity]:
        if abs(market_price - fair_price) < self.min_profit_threshold - EDGE_EPSILON:
            return None

        if fair_price > market_price:
            # Market underestimates the team's chances
            side, edge = TradeSide.YES, fair_price - market_price
        else:
            side, edge = TradeSide.NO, market_price - fair_price

        logger.debug("Edge %.3f -> %s (market %.3f, fair %.3f)", edge, side.value, market_price, fair_price)
        return Opportunity(side=side, edge=edge, market_price=market_price, fair_price=fair_price)
