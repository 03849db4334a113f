"""
Internal records persisted by the bot.

Match, Event and Trade mirror the rows in ``bot/database.py``.  The
daily ledger record lives next to its service in ``bot/portfolio.py``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def utcnow() -> datetime:
    """Timezone-aware now, used as the default clock everywhere."""
    return datetime.now(timezone.utc)


class MatchStatus(str, Enum):
    UPCOMING = "upcoming"
    LIVE = "live"
    FINISHED = "finished"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = [MatchStatus.UPCOMING, MatchStatus.LIVE, MatchStatus.FINISHED]


class TradeSide(str, Enum):
    YES = "YES"
    NO = "NO"


class TradeStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class EventType(str, Enum):
    """Canonical in-game event types understood by the engine."""
    FIRST_BLOOD = "first_blood"
    FIRST_TOWER = "first_tower"
    DRAGON = "dragon"
    ELDER_DRAGON = "elder_dragon"
    BARON = "baron"
    INHIBITOR = "inhibitor"
    TEAM_FIGHT = "team_fight"
    KILL = "kill"
    KILL_STREAK = "kill_streak"
    TOWER = "tower"
    GOLD_LEAD_CHANGE = "gold_lead_change"
    BASE_RACE = "base_race"
    SHUTDOWN_GOLD = "shutdown_gold"
    CHAMPION_PICK = "champion_pick"
    ACE = "ace"

    @classmethod
    def parse(cls, value: "EventType | str") -> Optional["EventType"]:
        """Return the enum member for ``value`` or None if it is not canonical."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return None


TEAM_SIDES = ("team1", "team2")


def opponent(side: str) -> str:
    return "team2" if side == "team1" else "team1"


@dataclass
class TeamStats:
    """Running per-team counters for a live game."""
    kills: int = 0
    towers: int = 0
    dragons: int = 0
    barons: int = 0
    inhibitors: int = 0


COUNTERS = ("kills", "towers", "dragons", "barons", "inhibitors")


@dataclass
class Match:
    match_id: str
    team1: str
    team2: str
    status: MatchStatus = MatchStatus.UPCOMING
    market_id: Optional[str] = None
    start_time: Optional[datetime] = None
    gold_diff: int = 0  # positive = team1 ahead
    team1_stats: TeamStats = field(default_factory=TeamStats)
    team2_stats: TeamStats = field(default_factory=TeamStats)
    team1_win_prob: float = 0.5
    team2_win_prob: float = 0.5
    last_updated: datetime = field(default_factory=utcnow)

    def stats_for(self, side: str) -> TeamStats:
        return self.team1_stats if side == "team1" else self.team2_stats


@dataclass
class Event:
    """One recorded in-game event.  Immutable once written."""
    match_id: str
    event_type: EventType
    team: str  # "team1" or "team2"
    impact: float
    timestamp: datetime = field(default_factory=utcnow)
    context: dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None


@dataclass
class Trade:
    """A single position taken against a market quote."""
    trade_id: str
    match_id: str
    market_id: str
    side: TradeSide
    entry_price: float
    size: float
    fair_price: float
    opened_at: datetime = field(default_factory=utcnow)
    ledger_date: Optional[str] = None  # ledger day holding this trade's exposure
    entry_reason: str = ""
    status: TradeStatus = TradeStatus.OPEN
    exit_price: Optional[float] = None
    pnl: Optional[float] = None
    exit_reason: Optional[str] = None
    closed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.status == TradeStatus.OPEN

    def profit_loss(self, exit_price: float) -> float:
        """P&L of this trade if it were closed at ``exit_price``."""
        if self.side == TradeSide.YES:
            return (exit_price - self.entry_price) * self.size
        return (self.entry_price - exit_price) * self.size


@dataclass
class LedgerDay:
    """Risk and P&L state for one trading day."""
    date: str  # ISO date, UTC
    starting_balance: float = 1000.0
    current_balance: float = 1000.0
    daily_pnl: float = 0.0
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    consecutive_losses: int = 0
    risk_exposure: float = 0.0
    trading_enabled: bool = True
    risk_capped: bool = False
    cooldown_until: Optional[datetime] = None

    def max_exposure(self, max_daily_risk: float) -> float:
        return self.starting_balance * max_daily_risk

    def in_cooldown(self, now: datetime) -> bool:
        return self.cooldown_until is not None and now < self.cooldown_until

    @property
    def pnl_pct(self) -> float:
        """Daily P&L as a percentage of the starting balance."""
        if self.starting_balance == 0:
            return 0.0
        return (self.daily_pnl / self.starting_balance) * 100

    @property
    def win_rate(self) -> float:
        closed = self.winning_trades + self.losing_trades
        return self.winning_trades / closed if closed else 0.0
