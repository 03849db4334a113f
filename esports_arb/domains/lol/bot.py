"""
League of Legends arbitrage bot: wires the generic supervisor with
PandaScore live data, Polymarket pricing and paper execution.

Entry point for the script workflow:
    python -m esports_arb.domains.lol.bot [--duration 2] [--config config.yaml]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

from ...bot.config import load_config
from ...bot.database import DEFAULT_DB_PATH, Database
from ...bot.portfolio import PortfolioLedger
from ...bot.supervisor import MatchSupervisor
from ...bot.trades import TradeLifecycleManager
from ...engine.impact import EventImpactModel
from ...engine.probability import ProbabilityEngine
from ...engine.triggers import TriggerDispatcher
from ...pandascore.client import PANDASCORE_BASE, PandaScoreClient
from ...polymarket import clob, gamma
from ...polymarket.venue import ClobPriceSource, PaperVenue
from ...strategies.arbitrage import ArbitrageDetector
from .scanner import GammaMarketResolver, PandaScoreFeed

logger = logging.getLogger(__name__)


def _build_supervisor(config: dict, db: Database, client: PandaScoreClient) -> MatchSupervisor:
    """Construct every service once from config and wire them together."""
    trading = config.get("trading", {}) or {}
    model_cfg = config.get("model", {}) or {}
    sup_cfg = config.get("supervisor", {}) or {}

    ledger = PortfolioLedger(
        db,
        seed_balance=(config.get("portfolio") or {}).get("seed_balance", 1000),
        max_daily_risk=trading.get("max_daily_risk", 0.05),
        stop_loss_trigger=trading.get("stop_loss_trigger", 3),
        cooldown_minutes=trading.get("cooldown_minutes", 10),
    )
    prices = ClobPriceSource()
    trades = TradeLifecycleManager(
        db,
        ledger,
        prices,
        PaperVenue(),
        max_position_size=trading.get("max_position_size", 0.01),
        trade_duration_seconds=trading.get("trade_duration_seconds", 30),
        exit_poll_seconds=trading.get("exit_poll_seconds", 1),
        stop_loss_pct=trading.get("stop_loss_pct", 0.05),
        correction_tolerance=trading.get("price_corrected_tolerance", 0.01),
        allow_concurrent_per_match=trading.get("allow_concurrent_trades_per_match", True),
    )
    dispatcher = TriggerDispatcher(db, EventImpactModel.from_config(model_cfg))
    engine = ProbabilityEngine(
        db,
        window_minutes=model_cfg.get("window_minutes", 5),
        fee_factor=model_cfg.get("fee_factor", 0.98),
    )
    return MatchSupervisor(
        db,
        PandaScoreFeed(client),
        GammaMarketResolver(),
        prices,
        dispatcher,
        engine,
        ArbitrageDetector(trading.get("min_profit_threshold", 0.02)),
        trades,
        ledger,
        discovery_interval=sup_cfg.get("discovery_interval_seconds", 10),
        poll_interval=sup_cfg.get("poll_interval_seconds", 2),
    )


async def run(duration_hours: float | None = None, config_path: str = "config.yaml") -> None:
    """High-level entry: load config, build services, run until stopped."""
    config = load_config(config_path)

    db = Database((config.get("database") or {}).get("path", DEFAULT_DB_PATH))
    try:
        await db.init_schema()
    except Exception:
        logger.critical("Cannot initialise database at %s", db.db_path, exc_info=True)
        raise SystemExit(1)
    print(f"  Database ready: {db.db_path}\n")

    ps_cfg = config.get("pandascore", {}) or {}
    client = PandaScoreClient(ps_cfg.get("api_key", ""), ps_cfg.get("base_url", PANDASCORE_BASE))
    supervisor = _build_supervisor(config, db, client)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass

    print("Initializing LoL Arbitrage Bot...\n")
    await supervisor.start()
    day = await supervisor.today_portfolio()
    print(f"  Strategy: {supervisor.strategy.name}")
    print(f"  Starting balance: ${day.starting_balance:,.2f}")
    print(f"  Duration: {'until stopped' if duration_hours is None else f'{duration_hours} hours'}\n")
    print("=" * 60)

    try:
        timeout = duration_hours * 3600 if duration_hours is not None else None
        try:
            await asyncio.wait_for(stop.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
    finally:
        await supervisor.stop()
        await client.close()
        await gamma.close()
        await clob.close()
        await _final_report(supervisor)


async def _final_report(supervisor: MatchSupervisor) -> None:
    p = await supervisor.today_portfolio()
    print(f"\n\n{'=' * 60}")
    print("TRADING SESSION COMPLETE")
    print(f"{'=' * 60}")
    print(f"Date: {p.date}")
    print(f"Starting Balance: ${p.starting_balance:,.2f}")
    print(f"Current Balance: ${p.current_balance:,.2f}")
    print(f"Daily P&L: ${p.daily_pnl:+,.2f} ({p.pnl_pct:+.2f}%)")
    print(f"Trades: {p.total_trades} (won {p.winning_trades}, lost {p.losing_trades})")
    print(f"Open Exposure: ${p.risk_exposure:,.2f}")
    print(f"Trading Enabled: {p.trading_enabled}")
    print(f"{'=' * 60}")


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Polymarket LoL Arbitrage Bot")
    parser.add_argument(
        "--duration", type=float, default=None, help="Duration in hours (default: until stopped)"
    )
    parser.add_argument(
        "--config", default="config.yaml", help="Config file path"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        asyncio.run(run(duration_hours=args.duration, config_path=args.config))
    except (FileNotFoundError, ValueError) as e:
        logger.critical("Startup failed: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
