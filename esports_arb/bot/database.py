"""SQLite database for persistence."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import aiosqlite

from .models import (
    COUNTERS,
    TEAM_SIDES,
    Event,
    EventType,
    LedgerDay,
    Match,
    MatchStatus,
    TeamStats,
    Trade,
    TradeSide,
    TradeStatus,
    utcnow,
)

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "data/esports_arb.db"

CREATE_TABLES_SQL = """
-- One row per provider match
CREATE TABLE IF NOT EXISTS matches (
    match_id TEXT PRIMARY KEY,
    team1 TEXT NOT NULL,
    team2 TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'upcoming',
    market_id TEXT,
    start_time REAL,
    gold_diff INTEGER NOT NULL DEFAULT 0,
    team1_kills INTEGER NOT NULL DEFAULT 0,
    team2_kills INTEGER NOT NULL DEFAULT 0,
    team1_towers INTEGER NOT NULL DEFAULT 0,
    team2_towers INTEGER NOT NULL DEFAULT 0,
    team1_dragons INTEGER NOT NULL DEFAULT 0,
    team2_dragons INTEGER NOT NULL DEFAULT 0,
    team1_barons INTEGER NOT NULL DEFAULT 0,
    team2_barons INTEGER NOT NULL DEFAULT 0,
    team1_inhibitors INTEGER NOT NULL DEFAULT 0,
    team2_inhibitors INTEGER NOT NULL DEFAULT 0,
    team1_win_prob REAL NOT NULL DEFAULT 0.5,
    team2_win_prob REAL NOT NULL DEFAULT 0.5,
    last_updated REAL NOT NULL
);

-- Append-only in-game event log
CREATE TABLE IF NOT EXISTS events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    match_id TEXT NOT NULL,
    event_type TEXT NOT NULL,
    team TEXT NOT NULL,
    impact REAL NOT NULL,
    timestamp REAL NOT NULL,
    context TEXT
);

-- Positions (open and closed)
CREATE TABLE IF NOT EXISTS trades (
    trade_id TEXT PRIMARY KEY,
    match_id TEXT NOT NULL,
    market_id TEXT NOT NULL,
    side TEXT NOT NULL,
    entry_price REAL NOT NULL,
    size REAL NOT NULL,
    fair_price REAL NOT NULL,
    entry_reason TEXT,
    opened_at REAL NOT NULL,
    ledger_date TEXT,
    status TEXT NOT NULL DEFAULT 'open',
    exit_price REAL,
    pnl REAL,
    exit_reason TEXT,
    closed_at REAL,
    duration_seconds REAL
);

-- Daily risk ledger, one row per UTC date
CREATE TABLE IF NOT EXISTS portfolio (
    date TEXT PRIMARY KEY,
    starting_balance REAL NOT NULL,
    current_balance REAL NOT NULL,
    daily_pnl REAL NOT NULL DEFAULT 0,
    total_trades INTEGER NOT NULL DEFAULT 0,
    winning_trades INTEGER NOT NULL DEFAULT 0,
    losing_trades INTEGER NOT NULL DEFAULT 0,
    consecutive_losses INTEGER NOT NULL DEFAULT 0,
    risk_exposure REAL NOT NULL DEFAULT 0,
    trading_enabled INTEGER NOT NULL DEFAULT 1,
    risk_capped INTEGER NOT NULL DEFAULT 0,
    cooldown_until REAL
);

-- Indexes
CREATE INDEX IF NOT EXISTS idx_events_match_ts ON events(match_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_trades_status ON trades(status);
CREATE INDEX IF NOT EXISTS idx_trades_match ON trades(match_id);
"""

# Status never moves backward on upsert.
_UPSERT_MATCH_SQL = """
INSERT INTO matches (match_id, team1, team2, status, market_id, start_time, last_updated)
VALUES (?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(match_id) DO UPDATE SET
    team1 = excluded.team1,
    team2 = excluded.team2,
    market_id = COALESCE(excluded.market_id, matches.market_id),
    start_time = COALESCE(excluded.start_time, matches.start_time),
    status = CASE
        WHEN matches.status = 'finished' THEN 'finished'
        WHEN matches.status = 'live' AND excluded.status = 'upcoming' THEN 'live'
        ELSE excluded.status
    END,
    last_updated = excluded.last_updated
"""


def _ts(value: Optional[datetime]) -> Optional[float]:
    return value.timestamp() if value is not None else None


def _dt(value: Optional[float]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


class Database:
    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        self.db_path = db_path

    def _connect(self) -> aiosqlite.Connection:
        return aiosqlite.connect(self.db_path, timeout=10.0)

    async def init_schema(self) -> None:
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            await db.executescript(CREATE_TABLES_SQL)
            await db.commit()

    async def reset(self) -> None:
        async with self._connect() as db:
            for table in ("matches", "events", "trades", "portfolio"):
                await db.execute(f"DROP TABLE IF EXISTS {table}")
            await db.commit()
        await self.init_schema()

    async def _fetchone(self, sql: str, params: tuple = ()) -> Optional[aiosqlite.Row]:
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(sql, params) as cur:
                return await cur.fetchone()

    async def _fetchall(self, sql: str, params: tuple = ()) -> list[aiosqlite.Row]:
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(sql, params) as cur:
                return list(await cur.fetchall())

    async def _execute(self, sql: str, params: tuple = ()) -> int:
        """Run one write statement in its own transaction; return rowcount."""
        async with self._connect() as db:
            cur = await db.execute(sql, params)
            await db.commit()
            return cur.rowcount

    # ── Matches ──────────────────────────────────────────────────────

    async def upsert_match(self, match: Match) -> None:
        await self._execute(_UPSERT_MATCH_SQL, (
            match.match_id,
            match.team1,
            match.team2,
            match.status.value,
            match.market_id,
            _ts(match.start_time),
            _ts(utcnow()),
        ))

    async def get_match(self, match_id: str) -> Optional[Match]:
        row = await self._fetchone("SELECT * FROM matches WHERE match_id = ?", (match_id,))
        return _row_to_match(row) if row else None

    async def list_matches(self, status: MatchStatus | None = None) -> list[Match]:
        if status is None:
            rows = await self._fetchall("SELECT * FROM matches ORDER BY last_updated DESC")
        else:
            rows = await self._fetchall(
                "SELECT * FROM matches WHERE status = ? ORDER BY last_updated DESC",
                (status.value,),
            )
        return [_row_to_match(r) for r in rows]

    async def set_match_status(self, match_id: str, status: MatchStatus) -> None:
        # Only forward transitions are applied.
        allowed = [s.value for s in MatchStatus if s.rank < status.rank]
        placeholders = ",".join("?" for _ in allowed) or "''"
        await self._execute(
            f"UPDATE matches SET status = ?, last_updated = ? "
            f"WHERE match_id = ? AND status IN ({placeholders})",
            (status.value, _ts(utcnow()), match_id, *allowed),
        )

    async def increment_counter(self, match_id: str, side: str, counter: str) -> None:
        if side not in TEAM_SIDES or counter not in COUNTERS:
            raise ValueError(f"Unknown counter {side}.{counter}")
        column = f"{side}_{counter}"
        await self._execute(
            f"UPDATE matches SET {column} = {column} + 1, last_updated = ? WHERE match_id = ?",
            (_ts(utcnow()), match_id),
        )

    async def set_gold_diff(self, match_id: str, gold_diff: int) -> None:
        await self._execute(
            "UPDATE matches SET gold_diff = ?, last_updated = ? WHERE match_id = ?",
            (gold_diff, _ts(utcnow()), match_id),
        )

    async def set_win_probability(self, match_id: str, team1: float, team2: float) -> None:
        await self._execute(
            "UPDATE matches SET team1_win_prob = ?, team2_win_prob = ?, last_updated = ? "
            "WHERE match_id = ?",
            (team1, team2, _ts(utcnow()), match_id),
        )

    # ── Events ───────────────────────────────────────────────────────

    async def insert_event(self, event: Event) -> int:
        async with self._connect() as db:
            cur = await db.execute(
                "INSERT INTO events (match_id, event_type, team, impact, timestamp, context) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    event.match_id,
                    event.event_type.value,
                    event.team,
                    event.impact,
                    _ts(event.timestamp),
                    json.dumps(event.context, default=str),
                ),
            )
            await db.commit()
            event.id = cur.lastrowid
            return cur.lastrowid

    async def events_since(self, match_id: str, since: datetime) -> list[Event]:
        """Events for a match recorded at or after ``since``, newest first."""
        rows = await self._fetchall(
            "SELECT * FROM events WHERE match_id = ? AND timestamp >= ? "
            "ORDER BY timestamp DESC, id DESC",
            (match_id, _ts(since)),
        )
        return [_row_to_event(r) for r in rows]

    # ── Trades ───────────────────────────────────────────────────────

    async def insert_trade(self, trade: Trade) -> None:
        await self._execute(
            "INSERT INTO trades (trade_id, match_id, market_id, side, entry_price, size, "
            "fair_price, entry_reason, opened_at, ledger_date, status) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                trade.trade_id,
                trade.match_id,
                trade.market_id,
                trade.side.value,
                trade.entry_price,
                trade.size,
                trade.fair_price,
                trade.entry_reason,
                _ts(trade.opened_at),
                trade.ledger_date,
                trade.status.value,
            ),
        )

    async def get_trade(self, trade_id: str) -> Optional[Trade]:
        row = await self._fetchone("SELECT * FROM trades WHERE trade_id = ?", (trade_id,))
        return _row_to_trade(row) if row else None

    async def list_trades(
        self,
        status: TradeStatus | None = None,
        match_id: str | None = None,
    ) -> list[Trade]:
        clauses: list[str] = []
        params: list[Any] = []
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if match_id is not None:
            clauses.append("match_id = ?")
            params.append(match_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = await self._fetchall(
            f"SELECT * FROM trades {where} ORDER BY opened_at DESC", tuple(params)
        )
        return [_row_to_trade(r) for r in rows]

    async def close_trade(
        self,
        trade_id: str,
        *,
        exit_price: float,
        pnl: float,
        exit_reason: str,
        closed_at: datetime,
        duration_seconds: float,
    ) -> bool:
        """Write all closing fields at once.  Returns False if the trade was not open."""
        changed = await self._execute(
            "UPDATE trades SET status = 'closed', exit_price = ?, pnl = ?, exit_reason = ?, "
            "closed_at = ?, duration_seconds = ? WHERE trade_id = ? AND status = 'open'",
            (exit_price, pnl, exit_reason, _ts(closed_at), duration_seconds, trade_id),
        )
        return changed == 1

    # ── Portfolio ledger ─────────────────────────────────────────────

    async def get_ledger(self, date: str) -> Optional[LedgerDay]:
        row = await self._fetchone("SELECT * FROM portfolio WHERE date = ?", (date,))
        return _row_to_ledger(row) if row else None

    async def latest_ledger_before(self, date: str) -> Optional[LedgerDay]:
        row = await self._fetchone(
            "SELECT * FROM portfolio WHERE date < ? ORDER BY date DESC LIMIT 1", (date,)
        )
        return _row_to_ledger(row) if row else None

    async def create_ledger(self, day: LedgerDay) -> bool:
        """Insert a new day; a row that already exists is left untouched."""
        created = await self._execute(
            "INSERT OR IGNORE INTO portfolio (date, starting_balance, current_balance) "
            "VALUES (?, ?, ?)",
            (day.date, day.starting_balance, day.current_balance),
        )
        return created == 1

    async def ledger_record_open(self, date: str, size: float) -> None:
        await self._execute(
            "UPDATE portfolio SET risk_exposure = risk_exposure + ?, "
            "total_trades = total_trades + 1 WHERE date = ?",
            (size, date),
        )

    async def ledger_reserve(self, date: str, size: float, cap: float) -> bool:
        """Book a new position's exposure unless the day is already at its cap."""
        booked = await self._execute(
            "UPDATE portfolio SET risk_exposure = risk_exposure + ?, "
            "total_trades = total_trades + 1 WHERE date = ? AND risk_exposure < ?",
            (size, date, cap),
        )
        return booked == 1

    async def ledger_release(self, date: str, size: float, *, cancel: bool = False) -> None:
        """Drop exposure on ``date``; ``cancel`` also takes the trade off the count."""
        await self._execute(
            "UPDATE portfolio SET risk_exposure = MAX(0, risk_exposure - ?), "
            "total_trades = total_trades - ? WHERE date = ?",
            (size, int(cancel), date),
        )

    async def ledger_record_close(self, date: str, size: float, pnl: float) -> None:
        won = 1 if pnl > 0 else 0
        await self._execute(
            """
            UPDATE portfolio SET
                current_balance = current_balance + ?,
                daily_pnl = daily_pnl + ?,
                risk_exposure = MAX(0, risk_exposure - ?),
                winning_trades = winning_trades + ?,
                losing_trades = losing_trades + (1 - ?),
                consecutive_losses = CASE WHEN ? = 1 THEN 0 ELSE consecutive_losses + 1 END
            WHERE date = ?
            """,
            (pnl, pnl, size, won, won, won, date),
        )

    async def ledger_set_state(
        self,
        date: str,
        *,
        trading_enabled: bool,
        risk_capped: bool,
        cooldown_until: Optional[datetime],
        reset_losses: bool = False,
    ) -> None:
        await self._execute(
            "UPDATE portfolio SET trading_enabled = ?, risk_capped = ?, cooldown_until = ?, "
            "consecutive_losses = CASE WHEN ? THEN 0 ELSE consecutive_losses END "
            "WHERE date = ?",
            (int(trading_enabled), int(risk_capped), _ts(cooldown_until), int(reset_losses), date),
        )


# ── Row mapping ──────────────────────────────────────────────────────

def _row_to_match(row: aiosqlite.Row) -> Match:
    stats = {
        side: TeamStats(**{c: row[f"{side}_{c}"] for c in COUNTERS})
        for side in TEAM_SIDES
    }
    return Match(
        match_id=row["match_id"],
        team1=row["team1"],
        team2=row["team2"],
        status=MatchStatus(row["status"]),
        market_id=row["market_id"],
        start_time=_dt(row["start_time"]),
        gold_diff=row["gold_diff"],
        team1_stats=stats["team1"],
        team2_stats=stats["team2"],
        team1_win_prob=row["team1_win_prob"],
        team2_win_prob=row["team2_win_prob"],
        last_updated=_dt(row["last_updated"]),
    )


def _row_to_event(row: aiosqlite.Row) -> Event:
    return Event(
        id=row["id"],
        match_id=row["match_id"],
        event_type=EventType(row["event_type"]),
        team=row["team"],
        impact=row["impact"],
        timestamp=_dt(row["timestamp"]),
        context=json.loads(row["context"]) if row["context"] else {},
    )


def _row_to_trade(row: aiosqlite.Row) -> Trade:
    return Trade(
        trade_id=row["trade_id"],
        match_id=row["match_id"],
        market_id=row["market_id"],
        side=TradeSide(row["side"]),
        entry_price=row["entry_price"],
        size=row["size"],
        fair_price=row["fair_price"],
        entry_reason=row["entry_reason"] or "",
        opened_at=_dt(row["opened_at"]),
        ledger_date=row["ledger_date"],
        status=TradeStatus(row["status"]),
        exit_price=row["exit_price"],
        pnl=row["pnl"],
        exit_reason=row["exit_reason"],
        closed_at=_dt(row["closed_at"]),
        duration_seconds=row["duration_seconds"],
    )


def _row_to_ledger(row: aiosqlite.Row) -> LedgerDay:
    return LedgerDay(
        date=row["date"],
        starting_balance=row["starting_balance"],
        current_balance=row["current_balance"],
        daily_pnl=row["daily_pnl"],
        total_trades=row["total_trades"],
        winning_trades=row["winning_trades"],
        losing_trades=row["losing_trades"],
        consecutive_losses=row["consecutive_losses"],
        risk_exposure=row["risk_exposure"],
        trading_enabled=bool(row["trading_enabled"]),
        risk_capped=bool(row["risk_capped"]),
        cooldown_until=_dt(row["cooldown_until"]),
    )
