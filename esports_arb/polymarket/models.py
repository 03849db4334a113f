"""
Pydantic models for Polymarket data.

Only models that are actually consumed by the codebase live here.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class OutcomeSnapshot(BaseModel):
    """Pricing data for a single outcome of a moneyline market."""
    token_id: str
    price: float = 0.0


class MarketSnapshot(BaseModel):
    """
    Moneyline market for a match, keyed by outcome (team) name.

    The outcome whose token is traded becomes the bot's market id.
    """
    slug: str
    title: str = ""
    outcomes: dict[str, OutcomeSnapshot] = Field(default_factory=dict)

    def token_for(self, team: str) -> Optional[str]:
        """Token id of the outcome named ``team`` (case-insensitive)."""
        wanted = team.strip().lower()
        for name, outcome in self.outcomes.items():
            if name.strip().lower() == wanted:
                return outcome.token_id
        return None
