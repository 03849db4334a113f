"""
Base strategy interface for trading strategies.

Strategies compare the engine's fair price for an outcome against the
venue's quoted price and return an ``Opportunity`` when worth trading.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ..bot.models import TradeSide


# ── Opportunity ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class Opportunity:
    """A mispricing worth taking one side of."""
    side: TradeSide
    edge: float  # absolute price difference, 0-1
    market_price: float
    fair_price: float


# ── Base strategy ────────────────────────────────────────────────────

class BaseStrategy(ABC):
    """Base class that all trading strategies must implement."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return strategy name for logging."""
        ...

    @abstractmethod
    def detect(self, market_price: float, fair_price: float) -> Optional[Opportunity]:
        """
        Decide whether the quoted price is worth trading against.

        Args:
            market_price: Current venue price for the YES outcome (0-1)
            fair_price: Engine's fee-adjusted fair price (0-1)

        Returns:
            Opportunity, or None when there is no edge
        """
        ...
