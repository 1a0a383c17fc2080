"""Main entry point for the decision engine."""
import argparse
import asyncio
import logging
import sys
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from config.settings import get_config
from core.orchestrator import DecisionEngineOrchestrator
from models.enums import MarketRegime, TradeSource, TradingMode
from models.trade import TradeHistoryFilters
from utils.database import DatabaseManager
from utils.exceptions import TradingSystemError
from utils.logging import setup_logging
from utils.trade_export import export_trades

logger = logging.getLogger(__name__)


def _parse_day(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected YYYY-MM-DD, got {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Regime-gated trading decision engine',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the price and advisor cycles (default)
  python main.py run

  # Run a single pass over every asset and exit
  python main.py run --once

  # Export the last 7 days of BTCUSDT trades to CSV
  python main.py export --asset BTCUSDT --days 7

  # Summarise today's trades
  python main.py summary
        """
    )
    subparsers = parser.add_subparsers(dest='command')

    run = subparsers.add_parser('run', help='Run the decision engine')
    run.add_argument('--once', action='store_true', help='Run one cycle per asset and exit')

    export = subparsers.add_parser('export', help='Export trade history to CSV')
    export.add_argument('--asset', type=str, default=None, help='Filter by asset symbol')
    export.add_argument('--action', type=str, default=None, help='Filter by action (substring, e.g. BUY)')
    export.add_argument('--mode', type=TradingMode.from_string, default=None, help='Filter by trading mode')
    export.add_argument('--regime', type=MarketRegime, default=None, help='Filter by market regime')
    export.add_argument('--source', type=TradeSource, default=None, help='Filter by trade source')
    export.add_argument('--search', type=str, default=None, help='Search asset, AI reason and notes')
    export.add_argument('--days', type=int, default=None, help='Only trades from the last N days')
    export.add_argument('--output-dir', type=str, default='.', help='Directory for the CSV file')

    summary = subparsers.add_parser('summary', help='Summarise one day of trades')
    summary.add_argument('--date', type=_parse_day, default=None, help='Day to summarise (default: today, UTC)')

    return parser


async def run_engine(config, once: bool = False) -> None:
    orchestrator = DecisionEngineOrchestrator(config=config)
    try:
        if once:
            results = await orchestrator.run_once()
            for symbol, result in results.items():
                logger.info(f"{symbol}: executed={result.executed} ({result.reason})")
        else:
            await orchestrator.start()
    finally:
        await orchestrator.stop()


def export_command(config, args) -> str:
    database = DatabaseManager(config)
    date_from = None
    if args.days:
        date_from = datetime.now(timezone.utc) - timedelta(days=args.days)
    filters = TradeHistoryFilters(
        asset=args.asset,
        action=args.action,
        mode=args.mode,
        regime=args.regime,
        source=args.source,
        search=args.search,
        date_from=date_from
    )
    trades = database.get_trade_history(filters)
    return export_trades(trades, args.output_dir, datetime.now(timezone.utc).date())


def summary_command(config, args) -> None:
    database = DatabaseManager(config)
    day = args.date or datetime.now(timezone.utc).date()
    summary = database.get_daily_summary(day)

    print(f"\nTrades on {day.isoformat()}: {summary.total_trades}")
    print(f"Profitable: {summary.profitable_trades}")
    print(f"Total P&L: {summary.total_pnl:.2f}")
    if summary.best_trade:
        print(f"Best: {summary.best_trade.asset} {summary.best_trade.action.value} {summary.best_trade.pnl:.2f}")
    if summary.worst_trade:
        print(f"Worst: {summary.worst_trade.asset} {summary.worst_trade.action.value} {summary.worst_trade.pnl:.2f}")
    for mode, count in summary.mode_breakdown.items():
        print(f"  mode {mode}: {count}")
    for regime, count in summary.regime_breakdown.items():
        print(f"  regime {regime}: {count}")


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the decision engine."""
    args = build_parser().parse_args(argv)
    command = args.command or 'run'

    try:
        config = get_config()
        setup_logging(config)
        logger.info(
            f"Configuration loaded: mode={config.trading.mode.value}, "
            f"log_level={config.log_level.value}, "
            f"assets={','.join(a.symbol for a in config.assets)}"
        )

        if command == 'run':
            asyncio.run(run_engine(config, once=getattr(args, 'once', False)))
        elif command == 'export':
            path = export_command(config, args)
            print(f"Exported trades to {path}")
        elif command == 'summary':
            summary_command(config, args)

    except TradingSystemError as e:
        logger.error(
            f"Decision engine error: {e.message}",
            extra={"correlation_id": e.correlation_id}
        )
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
