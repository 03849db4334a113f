"""Tests for the SQLite store."""

from datetime import timedelta

import pytest

from esports_arb.bot.models import Event, EventType, Match, MatchStatus, Trade, TradeSide


def _match(status=MatchStatus.UPCOMING, market_id=None) -> Match:
    return Match(match_id="m-1", team1="T1", team2="G2", status=status, market_id=market_id)


class TestMatches:
    @pytest.mark.asyncio
    async def test_upsert_roundtrip(self, db):
        await db.upsert_match(_match(MatchStatus.LIVE, "token-1"))
        match = await db.get_match("m-1")
        assert match.status == MatchStatus.LIVE
        assert match.market_id == "token-1"
        assert match.team1_win_prob == 0.5
        assert await db.get_match("missing") is None

    @pytest.mark.asyncio
    async def test_status_never_regresses(self, db):
        await db.upsert_match(_match(MatchStatus.LIVE, "token-1"))
        await db.upsert_match(_match(MatchStatus.UPCOMING))
        match = await db.get_match("m-1")
        assert match.status == MatchStatus.LIVE
        assert match.market_id == "token-1"

        await db.set_match_status("m-1", MatchStatus.FINISHED)
        await db.set_match_status("m-1", MatchStatus.LIVE)
        await db.upsert_match(_match(MatchStatus.LIVE))
        assert (await db.get_match("m-1")).status == MatchStatus.FINISHED

    @pytest.mark.asyncio
    async def test_list_by_status(self, db):
        await db.upsert_match(_match(MatchStatus.LIVE))
        assert [m.match_id for m in await db.list_matches(MatchStatus.LIVE)] == ["m-1"]
        assert await db.list_matches(MatchStatus.FINISHED) == []

    @pytest.mark.asyncio
    async def test_unknown_counter_rejected(self, db):
        await db.upsert_match(_match())
        with pytest.raises(ValueError):
            await db.increment_counter("m-1", "team3", "kills")
        with pytest.raises(ValueError):
            await db.increment_counter("m-1", "team1", "wards")

    @pytest.mark.asyncio
    async def test_win_probability(self, db):
        await db.upsert_match(_match())
        await db.set_win_probability("m-1", 0.62, 0.38)
        match = await db.get_match("m-1")
        assert (match.team1_win_prob, match.team2_win_prob) == (0.62, 0.38)


class TestEvents:
    @pytest.mark.asyncio
    async def test_events_since_newest_first(self, db, clock):
        for offset in (0, 60, 120):
            await db.insert_event(Event(
                match_id="m-1",
                event_type=EventType.DRAGON,
                team="team1",
                impact=0.05,
                timestamp=clock() + timedelta(seconds=offset),
                context={"dragon_type": "infernal"},
            ))
        events = await db.events_since("m-1", clock() + timedelta(seconds=60))
        assert [e.timestamp for e in events] == [
            clock() + timedelta(seconds=120),
            clock() + timedelta(seconds=60),
        ]
        assert events[0].context == {"dragon_type": "infernal"}
        assert events[0].id is not None


class TestTrades:
    @pytest.mark.asyncio
    async def test_close_only_once(self, db, clock):
        await db.insert_trade(Trade(
            trade_id="t-1", match_id="m-1", market_id="tok", side=TradeSide.NO,
            entry_price=0.6, size=10.0, fair_price=0.5, opened_at=clock(),
        ))
        kwargs = dict(exit_price=0.55, pnl=0.5, exit_reason="timeout",
                      closed_at=clock(), duration_seconds=30.0)
        assert await db.close_trade("t-1", **kwargs)
        assert not await db.close_trade("t-1", **kwargs)

        trade = await db.get_trade("t-1")
        assert not trade.is_open
        assert trade.side == TradeSide.NO
        assert trade.opened_at == clock()
