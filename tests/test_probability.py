"""Tests for the win-probability engine."""

from datetime import timedelta

import pytest

from esports_arb.bot.database import Database
from esports_arb.bot.models import Event, EventType, Match, MatchStatus
from esports_arb.engine.probability import ProbabilityEngine

_MATCH_ID = "m-1"


@pytest.fixture
def engine(db, clock) -> ProbabilityEngine:
    return ProbabilityEngine(db, clock=clock)


async def _add_match(db, gold_diff: int = 0) -> None:
    await db.upsert_match(Match(match_id=_MATCH_ID, team1="T1", team2="G2", status=MatchStatus.LIVE))
    if gold_diff:
        await db.set_gold_diff(_MATCH_ID, gold_diff)


async def _add_event(db, clock, team: str, impact: float, ago_seconds: float = 0) -> None:
    await db.insert_event(Event(
        match_id=_MATCH_ID,
        event_type=EventType.BARON,
        team=team,
        impact=impact,
        timestamp=clock() - timedelta(seconds=ago_seconds),
    ))


class TestEstimate:
    @pytest.mark.asyncio
    async def test_unknown_match_is_even(self, engine):
        probs = await engine.estimate("missing")
        assert (probs.team1, probs.team2) == (0.5, 0.5)

    @pytest.mark.asyncio
    async def test_gold_difference_shift(self, db, engine):
        await _add_match(db, gold_diff=2000)
        probs = await engine.estimate(_MATCH_ID)
        assert probs.team1 == pytest.approx(0.52)
        assert probs.team2 == pytest.approx(0.48)

    @pytest.mark.asyncio
    async def test_recent_events_shift_toward_their_team(self, db, clock, engine):
        await _add_match(db, gold_diff=-1000)
        await _add_event(db, clock, "team1", 0.12, ago_seconds=30)
        await _add_event(db, clock, "team2", 0.03, ago_seconds=10)
        probs = await engine.estimate(_MATCH_ID)
        assert probs.team1 == pytest.approx(0.5 - 0.01 + 0.12 - 0.03)
        assert probs.team1 + probs.team2 == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_events_outside_window_are_ignored(self, db, clock, engine):
        await _add_match(db)
        await _add_event(db, clock, "team1", 0.12, ago_seconds=6 * 60)
        probs = await engine.estimate(_MATCH_ID)
        assert probs.team1 == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_window_is_configurable(self, db, clock):
        engine = ProbabilityEngine(db, window_minutes=10, clock=clock)
        await _add_match(db)
        await _add_event(db, clock, "team2", 0.10, ago_seconds=6 * 60)
        probs = await engine.estimate(_MATCH_ID)
        assert probs.team2 == pytest.approx(0.6)

    @pytest.mark.asyncio
    async def test_clamped_and_normalized(self, db, clock, engine):
        await _add_match(db, gold_diff=15000)
        for _ in range(5):
            await _add_event(db, clock, "team1", 0.2)
        probs = await engine.estimate(_MATCH_ID)
        assert probs.team1 == pytest.approx(0.99)
        assert probs.team2 == pytest.approx(0.01)
        assert probs.team1 + probs.team2 == pytest.approx(1.0)


class TestPriceFromProbability:
    def test_fee_discount(self):
        engine = ProbabilityEngine(Database(":memory:"))
        assert engine.price_from_probability(0.5) == pytest.approx(0.49)

    def test_clamped(self):
        engine = ProbabilityEngine(Database(":memory:"))
        assert engine.price_from_probability(1.0) == pytest.approx(0.98)
        assert engine.price_from_probability(0.005) == pytest.approx(0.01)
