"""Tests for event trigger dispatch."""

from datetime import timedelta

import pytest
import pytest_asyncio

from esports_arb.bot.models import EventType, Match, MatchStatus
from esports_arb.engine.triggers import TriggerDispatcher

_MATCH_ID = "m-1"


@pytest.fixture
def dispatcher(db, clock) -> TriggerDispatcher:
    return TriggerDispatcher(db, clock=clock)


@pytest_asyncio.fixture
async def match(db):
    await db.upsert_match(Match(match_id=_MATCH_ID, team1="T1", team2="G2", status=MatchStatus.LIVE))


async def _events(db, clock):
    return await db.events_since(_MATCH_ID, clock() - timedelta(hours=1))


class TestDispatch:
    @pytest.mark.asyncio
    async def test_unknown_type_ignored(self, db, clock, dispatcher, match):
        assert await dispatcher.process(_MATCH_ID, "rift_herald", {"team": "team1"}) is None
        assert await _events(db, clock) == []

    @pytest.mark.asyncio
    async def test_simple_event_recorded(self, db, clock, dispatcher, match):
        impact = await dispatcher.process(_MATCH_ID, "first_blood", {"team": "team2"})
        assert impact == pytest.approx(0.03)

        [event] = await _events(db, clock)
        assert event.event_type == EventType.FIRST_BLOOD
        assert event.team == "team2"
        assert event.timestamp == clock()

    @pytest.mark.asyncio
    async def test_missing_team_is_skipped(self, db, clock, dispatcher, match):
        assert await dispatcher.process(_MATCH_ID, EventType.ACE, {}) is None
        assert await dispatcher.process(_MATCH_ID, "baron", {"team": "blue"}) is None
        assert await _events(db, clock) == []
        assert (await db.get_match(_MATCH_ID)).team1_stats.barons == 0


class TestCountedEvents:
    @pytest.mark.asyncio
    async def test_kill_only_counts(self, db, clock, dispatcher, match):
        impact = await dispatcher.process(_MATCH_ID, "kill", {"team": "team1"})
        assert impact == pytest.approx(0.001)
        assert await _events(db, clock) == []
        assert (await db.get_match(_MATCH_ID)).team1_stats.kills == 1

    @pytest.mark.asyncio
    async def test_kill_streak_recorded(self, db, clock, dispatcher, match):
        impact = await dispatcher.process(_MATCH_ID, "kill", {"team": "team2", "is_streak": True})
        assert impact == pytest.approx(0.02)
        [event] = await _events(db, clock)
        assert event.event_type == EventType.KILL_STREAK
        assert (await db.get_match(_MATCH_ID)).team2_stats.kills == 1

    @pytest.mark.asyncio
    async def test_tower_counts_and_records(self, db, clock, dispatcher, match):
        impact = await dispatcher.process(_MATCH_ID, "tower", {"team": "team2"})
        assert impact == pytest.approx(0.002)
        assert (await db.get_match(_MATCH_ID)).team2_stats.towers == 1
        assert len(await _events(db, clock)) == 1

    @pytest.mark.asyncio
    async def test_objectives_count(self, db, dispatcher, match):
        await dispatcher.process(_MATCH_ID, "baron", {"team": "team1", "game_time": 32})
        await dispatcher.process(_MATCH_ID, "inhibitor", {"team": "team1"})
        stats = (await db.get_match(_MATCH_ID)).team1_stats
        assert (stats.barons, stats.inhibitors) == (1, 1)

    @pytest.mark.asyncio
    async def test_third_dragon_stacks(self, db, dispatcher, match):
        impacts = [
            await dispatcher.process(_MATCH_ID, "dragon", {"team": "team1"})
            for _ in range(3)
        ]
        assert impacts == [pytest.approx(0.05), pytest.approx(0.05), pytest.approx(0.075)]
        assert (await db.get_match(_MATCH_ID)).team1_stats.dragons == 3

    @pytest.mark.asyncio
    async def test_team_fight_uses_winning_team(self, db, clock, dispatcher, match):
        impact = await dispatcher.process(
            _MATCH_ID, "team_fight", {"winning_team": "team2", "kill_difference": 4}
        )
        assert impact == pytest.approx(0.104)
        [event] = await _events(db, clock)
        assert event.team == "team2"


class TestGoldLead:
    @pytest.mark.asyncio
    async def test_small_swing_updates_state_only(self, db, clock, dispatcher, match):
        impact = await dispatcher.process(_MATCH_ID, "gold_lead_change", {"gold_difference": 1500})
        assert impact == pytest.approx(0.001)
        assert (await db.get_match(_MATCH_ID)).gold_diff == 1500
        assert await _events(db, clock) == []

    @pytest.mark.asyncio
    async def test_large_swing_favours_leader(self, db, clock, dispatcher, match):
        impact = await dispatcher.process(_MATCH_ID, "gold_lead_change", {"gold_difference": -3500})
        assert impact == pytest.approx(0.045)
        [event] = await _events(db, clock)
        assert event.team == "team2"
        assert (await db.get_match(_MATCH_ID)).gold_diff == -3500
