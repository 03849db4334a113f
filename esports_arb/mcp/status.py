"""
Read-only MCP status server over the bot's database.

Tools:
  - get_status     live matches and open trades
  - get_portfolio  today's risk ledger (or a given date)
  - list_trades    recent trades, optionally filtered

Run alongside the bot:
    python -m esports_arb.mcp.status [--db data/esports_arb.db]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from dataclasses import asdict
from typing import Any

import mcp.server.stdio
import mcp.types as types
from mcp.server import Server

from ..bot.database import DEFAULT_DB_PATH, Database
from ..bot.models import MatchStatus, TradeStatus, utcnow

logger = logging.getLogger(__name__)


class StatusMCPServer:

    def __init__(self, db: Database, name: str = "esports-arb-status"):
        self.db = db
        self.server = Server(name)
        self._register_handlers()

    def _register_handlers(self) -> None:
        @self.server.list_tools()
        async def list_tools() -> list[types.Tool]:
            return self._tools()

        @self.server.call_tool()
        async def call_tool(
            name: str, arguments: dict[str, Any]
        ) -> list[types.TextContent]:
            try:
                result = await self._dispatch(name, arguments or {})
                text = json.dumps(result, indent=2, default=str)
            except Exception as e:
                logger.error("Tool %s failed: %s", name, e)
                text = json.dumps({"error": str(e), "tool": name}, indent=2)
            return [types.TextContent(type="text", text=text)]

    @staticmethod
    def _tools() -> list[types.Tool]:
        return [
            types.Tool(
                name="get_status",
                description=(
                    "Bot status summary: matches currently monitored (status live) "
                    "with their win probabilities, and trades that are still open."
                ),
                inputSchema={"type": "object", "properties": {}},
            ),
            types.Tool(
                name="get_portfolio",
                description=(
                    "Daily risk ledger: balance, P&L, trade counts, exposure, "
                    "consecutive losses and whether trading is enabled."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        "date": {
                            "type": "string",
                            "description": "ISO date (UTC). Defaults to today.",
                        },
                    },
                },
            ),
            types.Tool(
                name="list_trades",
                description="Recent trades, newest first.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "status": {
                            "type": "string",
                            "description": "open, closed or cancelled.",
                        },
                        "match_id": {"type": "string"},
                        "limit": {"type": "integer", "default": 20},
                    },
                },
            ),
        ]

    async def _dispatch(self, name: str, args: dict[str, Any]) -> Any:
        if name == "get_status":
            live = await self.db.list_matches(MatchStatus.LIVE)
            open_trades = await self.db.list_trades(status=TradeStatus.OPEN)
            return {
                "active_matches": len(live),
                "matches": [
                    {
                        "match_id": m.match_id,
                        "teams": f"{m.team1} vs {m.team2}",
                        "market_id": m.market_id,
                        "gold_diff": m.gold_diff,
                        "win_probability": {m.team1: m.team1_win_prob, m.team2: m.team2_win_prob},
                    }
                    for m in live
                ],
                "open_trades": [asdict(t) for t in open_trades],
            }

        if name == "get_portfolio":
            date = args.get("date") or utcnow().date().isoformat()
            day = await self.db.get_ledger(date)
            if day is None:
                return {"error": f"No ledger for {date}"}
            return {**asdict(day), "pnl_pct": round(day.pnl_pct, 2), "win_rate": day.win_rate}

        if name == "list_trades":
            status = TradeStatus(args["status"]) if args.get("status") else None
            trades = await self.db.list_trades(status=status, match_id=args.get("match_id"))
            return [asdict(t) for t in trades[: int(args.get("limit", 20))]]

        return {"error": f"Unknown tool: {name}"}

    async def run(self) -> None:
        logger.info("Starting MCP server '%s' ...", self.server.name)
        async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options(),
            )


# ── Entry point ──────────────────────────────────────────────────────

def main() -> None:
    parser = argparse.ArgumentParser(description="esports-arb status MCP server")
    parser.add_argument("--db", default=DEFAULT_DB_PATH, help="SQLite database path")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    server = StatusMCPServer(Database(args.db))
    asyncio.run(server.run())


if __name__ == "__main__":
    main()
