"""
Match supervisor: discovery, per-match polling and the trading pipeline.

Per live match, every poll:
  fetch events -> dispatch -> estimate -> quote -> detect -> open trade

Discovery registers newly running matches that resolve to a market.
A match leaves the registry when the provider reports it finished or
canceled, which also ends its polling task.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, Protocol

from .database import Database
from .models import LedgerDay, Match, MatchStatus, utcnow
from .portfolio import PortfolioLedger
from .tasks import PeriodicTask
from .trades import PriceSource, TradeLifecycleManager
from ..engine.probability import ProbabilityEngine
from ..engine.triggers import TriggerDispatcher
from ..pandascore.models import FeedEvent, LiveMatch
from ..strategies.base import BaseStrategy

logger = logging.getLogger(__name__)

# Provider statuses after which a match never produces events again
TERMINAL_STATUSES = frozenset({"finished", "canceled", "cancelled"})

DEFAULT_DISCOVERY_INTERVAL = 10.0
DEFAULT_POLL_INTERVAL = 2.0


# ── Collaborator protocols ───────────────────────────────────────────

class LiveMatchFeed(Protocol):
    async def list_live_matches(self) -> list[LiveMatch]:
        ...

    async def match_events(self, match: LiveMatch) -> list[FeedEvent]:
        ...

    async def match_status(self, match_id: str) -> Optional[str]:
        ...


class MarketResolver(Protocol):
    async def resolve(self, match: LiveMatch) -> Optional[str]:
        """Market id (YES token for team1) for a live match, or None."""
        ...


@dataclass
class ActiveMatch:
    match: LiveMatch
    market_id: str
    game_id: str
    last_event_time: datetime
    task: Optional[PeriodicTask] = field(default=None, repr=False)


class MatchSupervisor:
    def __init__(
        self,
        db: Database,
        feed: LiveMatchFeed,
        resolver: MarketResolver,
        prices: PriceSource,
        dispatcher: TriggerDispatcher,
        engine: ProbabilityEngine,
        strategy: BaseStrategy,
        trades: TradeLifecycleManager,
        ledger: PortfolioLedger,
        *,
        discovery_interval: float = DEFAULT_DISCOVERY_INTERVAL,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.feed = feed
        self.resolver = resolver
        self.prices = prices
        self.dispatcher = dispatcher
        self.engine = engine
        self.strategy = strategy
        self.trades = trades
        self.ledger = ledger
        self.discovery_interval = discovery_interval
        self.poll_interval = poll_interval
        self.clock = clock

        self._active: dict[str, ActiveMatch] = {}
        self._discovery: Optional[PeriodicTask] = None
        self._running = False

    # ── Lifecycle ────────────────────────────────────────────────────

    async def start(self) -> None:
        logger.info("Starting match supervisor (strategy: %s)", self.strategy.name)
        await self.ledger.today()
        self._running = True
        self._discovery = PeriodicTask("discovery", self.discovery_interval, self.discover).start()
        logger.info("Match supervisor running")

    async def stop(self) -> None:
        self._running = False
        if self._discovery is not None:
            await self._discovery.cancel()
            self._discovery = None
        active = list(self._active.values())
        self._active.clear()
        for info in active:
            if info.task is not None:
                await info.task.cancel()
        await self.trades.shutdown()
        logger.info("Match supervisor stopped")

    # ── Status surface ───────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        return self._running

    def active_match_count(self) -> int:
        return len(self._active)

    def active_match_ids(self) -> set[str]:
        return set(self._active)

    async def today_portfolio(self) -> LedgerDay:
        return await self.ledger.today()

    # ── Discovery ────────────────────────────────────────────────────

    async def discover(self) -> None:
        logger.info("Discovering active matches...")
        live = await self.feed.list_live_matches()
        for match in live:
            if match.match_id in self._active:
                continue
            try:
                market_id = await self.resolver.resolve(match)
            except Exception as e:
                logger.error("Market lookup failed for %s: %s", match.match_id, e)
                continue
            if not market_id:
                logger.warning(
                    "No matching market found for %s vs %s", match.team1, match.team2
                )
                continue
            await self.register(match, market_id)
        logger.info("Discovered %d active matches", len(self._active))

    async def register(self, match: LiveMatch, market_id: str) -> bool:
        if match.match_id in self._active:
            return False
        if not match.running_game_id:
            logger.warning("No running game for match %s, skipping registration", match.match_id)
            return False

        await self.db.upsert_match(Match(
            match_id=match.match_id,
            team1=match.team1,
            team2=match.team2,
            status=MatchStatus.LIVE,
            market_id=market_id,
            start_time=match.scheduled_at,
        ))

        info = ActiveMatch(
            match=match,
            market_id=market_id,
            game_id=match.running_game_id,
            last_event_time=self.clock(),
        )
        match_id = match.match_id

        async def tick() -> bool:
            return await self.poll(match_id)

        info.task = PeriodicTask(
            f"poll-{match_id}",
            self.poll_interval,
            tick,
            guard=lambda: match_id in self._active,
        )
        self._active[match_id] = info
        info.task.start()
        logger.info("Registered match: %s vs %s (market %s)", match.team1, match.team2, market_id)
        return True

    async def deregister(self, match_id: str, status: str = "finished") -> None:
        info = self._active.pop(match_id, None)
        if info is None:
            return
        await self.db.set_match_status(match_id, MatchStatus.FINISHED)
        logger.info("Match %s %s and removed from monitoring", match_id, status)

    # ── Per-match polling ────────────────────────────────────────────

    async def poll(self, match_id: str) -> bool:
        """One polling tick.  Returns False once the match is no longer active."""
        info = self._active.get(match_id)
        if info is None:
            return False

        events = await self.feed.match_events(info.match)
        for event in sorted(events, key=lambda e: e.timestamp):
            if event.timestamp <= info.last_event_time:
                continue
            await self.process_event(match_id, event)
            info.last_event_time = event.timestamp

        status = await self.feed.match_status(match_id)
        if status in TERMINAL_STATUSES:
            await self.deregister(match_id, status)
        return match_id in self._active

    async def process_event(self, match_id: str, event: FeedEvent) -> None:
        try:
            impact = await self.dispatcher.process(match_id, event.type, event.context)
            if impact is not None and impact > 0:
                await self.evaluate(match_id)
        except Exception:
            logger.exception("Error processing event for match %s", match_id)

    async def evaluate(self, match_id: str) -> Optional[str]:
        """Re-price the match and trade any mispricing.  Returns a trade id."""
        info = self._active.get(match_id)
        if info is None:
            return None

        probabilities = await self.engine.estimate(match_id)
        await self.db.set_win_probability(match_id, probabilities.team1, probabilities.team2)

        market_price = await self.prices.get_price(info.market_id)
        if market_price is None:
            return None

        fair_price = self.engine.price_from_probability(probabilities.team1)
        opportunity = self.strategy.detect(market_price, fair_price)
        if opportunity is None:
            return None

        logger.info(
            "Arbitrage opportunity found: %s @ %.3f, fair %.3f (edge %.3f)",
            opportunity.side.value, market_price, fair_price, opportunity.edge,
        )
        trade_id = await self.trades.open(
            match_id, info.market_id, opportunity.side, market_price, fair_price
        )
        if trade_id:
            logger.info("Arbitrage trade executed: %s", trade_id)
        return trade_id
