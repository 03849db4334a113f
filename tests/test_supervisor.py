"""Tests for the match supervisor pipeline."""

from datetime import timedelta
from typing import Optional

import pytest
import pytest_asyncio

from esports_arb.bot.models import EventType, MatchStatus, TradeSide
from esports_arb.bot.portfolio import PortfolioLedger
from esports_arb.bot.supervisor import MatchSupervisor
from esports_arb.bot.trades import TradeLifecycleManager
from esports_arb.engine.probability import ProbabilityEngine
from esports_arb.engine.triggers import TriggerDispatcher
from esports_arb.pandascore.models import FeedEvent, LiveMatch
from esports_arb.strategies.arbitrage import ArbitrageDetector

_MARKET_ID = "token-t1"


class FakeFeed:
    def __init__(self):
        self.matches: list[LiveMatch] = []
        self.events: dict[str, list[FeedEvent]] = {}
        self.status: dict[str, str] = {}

    async def list_live_matches(self) -> list[LiveMatch]:
        return list(self.matches)

    async def match_events(self, match: LiveMatch) -> list[FeedEvent]:
        return list(self.events.get(match.match_id, []))

    async def match_status(self, match_id: str) -> Optional[str]:
        return self.status.get(match_id, "running")


class FakeResolver:
    def __init__(self, market_id: Optional[str] = _MARKET_ID):
        self.market_id = market_id
        self.calls = 0

    async def resolve(self, match: LiveMatch) -> Optional[str]:
        self.calls += 1
        return self.market_id


def _live(match_id="m-1", game_id: Optional[str] = "g-1") -> LiveMatch:
    return LiveMatch(match_id=match_id, team1="T1", team2="G2", slug="lol-t1-g2", running_game_id=game_id)


@pytest.fixture
def feed() -> FakeFeed:
    return FakeFeed()


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest_asyncio.fixture
async def supervisor(db, feed, resolver, prices, venue, clock):
    ledger = PortfolioLedger(db, clock=clock)
    trades = TradeLifecycleManager(db, ledger, prices, venue, exit_poll_seconds=60.0, clock=clock)
    sup = MatchSupervisor(
        db,
        feed,
        resolver,
        prices,
        TriggerDispatcher(db, clock=clock),
        ProbabilityEngine(db, clock=clock),
        ArbitrageDetector(),
        trades,
        ledger,
        discovery_interval=60.0,
        poll_interval=0.01,
        clock=clock,
    )
    yield sup
    await sup.stop()


class TestDiscovery:
    @pytest.mark.asyncio
    async def test_registers_live_match(self, db, feed, supervisor):
        feed.matches = [_live()]
        await supervisor.discover()

        assert supervisor.active_match_ids() == {"m-1"}
        match = await db.get_match("m-1")
        assert match.status == MatchStatus.LIVE
        assert match.market_id == _MARKET_ID

    @pytest.mark.asyncio
    async def test_already_active_not_resolved_again(self, feed, resolver, supervisor):
        feed.matches = [_live()]
        await supervisor.discover()
        await supervisor.discover()
        assert resolver.calls == 1
        assert supervisor.active_match_count() == 1

    @pytest.mark.asyncio
    async def test_no_market_no_registration(self, db, feed, resolver, supervisor):
        resolver.market_id = None
        feed.matches = [_live()]
        await supervisor.discover()
        assert supervisor.active_match_count() == 0
        assert await db.get_match("m-1") is None

    @pytest.mark.asyncio
    async def test_no_running_game_no_registration(self, supervisor):
        assert not await supervisor.register(_live(game_id=None), _MARKET_ID)
        assert supervisor.active_match_count() == 0


class TestPipeline:
    @pytest.mark.asyncio
    async def test_event_to_trade(self, db, feed, clock, venue, supervisor, until):
        feed.events["m-1"] = [
            FeedEvent(
                type=EventType.BARON,
                timestamp=clock() + timedelta(seconds=5),
                team="team1",
                context={"team": "team1"},
            ),
        ]
        await supervisor.register(_live(), _MARKET_ID)

        async def traded() -> bool:
            return bool(await db.list_trades())

        assert await until(traded)
        [trade] = await db.list_trades()
        assert trade.side == TradeSide.YES
        assert trade.entry_price == pytest.approx(0.50)
        # (0.5 + 0.12) * 0.98
        assert trade.fair_price == pytest.approx(0.6076)

        match = await db.get_match("m-1")
        assert match.team1_stats.barons == 1
        assert match.team1_win_prob == pytest.approx(0.62)
        assert len(venue.orders) == 1

    @pytest.mark.asyncio
    async def test_events_processed_once(self, db, feed, clock, supervisor, until):
        feed.events["m-1"] = [
            FeedEvent(type=EventType.TOWER, timestamp=clock() + timedelta(seconds=1),
                      team="team2", context={"team": "team2"}),
            FeedEvent(type=EventType.TOWER, timestamp=clock() - timedelta(seconds=1),
                      team="team2", context={"team": "team2"}),
        ]
        await supervisor.register(_live(), _MARKET_ID)
        info = supervisor._active["m-1"]

        async def ticked() -> bool:
            return info.task.ticks >= 3

        assert await until(ticked)
        match = await db.get_match("m-1")
        assert match.team2_stats.towers == 1

    @pytest.mark.asyncio
    async def test_finished_match_deregistered(self, db, feed, supervisor, until):
        await supervisor.register(_live(), _MARKET_ID)
        feed.status["m-1"] = "finished"

        async def gone() -> bool:
            return supervisor.active_match_count() == 0

        assert await until(gone)
        assert (await db.get_match("m-1")).status == MatchStatus.FINISHED

    @pytest.mark.asyncio
    async def test_canceled_match_deregistered(self, db, feed, supervisor, until):
        await supervisor.register(_live(), _MARKET_ID)
        feed.status["m-1"] = "canceled"

        async def gone() -> bool:
            return supervisor.active_match_count() == 0

        assert await until(gone)
        assert "m-1" not in supervisor.active_match_ids()

    @pytest.mark.asyncio
    async def test_no_quote_no_trade(self, db, prices, supervisor):
        prices.default = None
        await supervisor.register(_live(), _MARKET_ID)
        assert await supervisor.evaluate("m-1") is None
        assert await db.list_trades() == []

    @pytest.mark.asyncio
    async def test_fair_market_no_trade(self, db, prices, supervisor):
        prices.default = 0.49
        await supervisor.register(_live(), _MARKET_ID)
        assert await supervisor.evaluate("m-1") is None
        assert await db.list_trades() == []


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, feed, supervisor, until):
        feed.matches = [_live()]
        await supervisor.start()
        assert supervisor.is_running

        async def registered() -> bool:
            return supervisor.active_match_count() == 1

        assert await until(registered)
        day = await supervisor.today_portfolio()
        assert day.current_balance == pytest.approx(1000.0)

        await supervisor.stop()
        assert not supervisor.is_running
        assert supervisor.active_match_count() == 0
