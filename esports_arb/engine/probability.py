"""
Win-probability estimation from match state and recent events.

    p(team1) = 0.5 + gold_diff / 1000 * 1%  + sum(recent event impacts)

Events inside the trailing window shift probability toward the team
they favour.  The pair is renormalized and clamped to [0.01, 0.99].
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from ..bot.database import Database
from ..bot.models import utcnow

logger = logging.getLogger(__name__)

BASE_PROBABILITY = 0.5
GOLD_UNIT = 1000
GOLD_SHIFT_PER_UNIT = 0.01
DEFAULT_WINDOW_MINUTES = 5
DEFAULT_FEE_FACTOR = 0.98
MIN_PROB = 0.01
MAX_PROB = 0.99


def clamp(value: float, low: float = MIN_PROB, high: float = MAX_PROB) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class WinProbability:
    team1: float = BASE_PROBABILITY
    team2: float = BASE_PROBABILITY


class ProbabilityEngine:
    def __init__(
        self,
        db: Database,
        *,
        window_minutes: float = DEFAULT_WINDOW_MINUTES,
        fee_factor: float = DEFAULT_FEE_FACTOR,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.window = timedelta(minutes=window_minutes)
        self.fee_factor = fee_factor
        self.clock = clock

    async def estimate(self, match_id: str) -> WinProbability:
        match = await self.db.get_match(match_id)
        if match is None:
            return WinProbability()

        gold_shift = match.gold_diff / GOLD_UNIT * GOLD_SHIFT_PER_UNIT
        team1 = BASE_PROBABILITY + gold_shift
        team2 = BASE_PROBABILITY - gold_shift

        # events_since returns newest first
        recent = await self.db.events_since(match_id, self.clock() - self.window)
        for event in recent:
            if event.team == "team1":
                team1 += event.impact
                team2 -= event.impact
            else:
                team1 -= event.impact
                team2 += event.impact

        total = team1 + team2
        if total > 0:
            team1, team2 = team1 / total, team2 / total
        else:
            team1, team2 = BASE_PROBABILITY, BASE_PROBABILITY

        result = WinProbability(team1=clamp(team1), team2=clamp(team2))
        logger.debug(
            "Match %s: gold %+d, %d recent events -> %.3f / %.3f",
            match_id, match.gold_diff, len(recent), result.team1, result.team2,
        )
        return result

    def price_from_probability(self, probability: float) -> float:
        """Fair market price for an outcome, net of venue fees."""
        return clamp(probability * self.fee_factor)
