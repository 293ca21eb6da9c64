#!/usr/bin/env python3
"""
Main entry point for the hybrid trading engine.

Simulation mode runs the paper-trading loop against live market data;
backtest mode replays a candle file through the same pipeline.
"""

import argparse
import json
import logging
import random
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from hybrid_trader.backtesting.backtest_engine import BacktestHarness
from hybrid_trader.backtesting.report import generate_report
from hybrid_trader.config import Config
from hybrid_trader.controllers.cycle_controller import CycleController
from hybrid_trader.data_fetchers.market_data_fetcher import MarketDataFetcher, create_exchange, load_candles_csv
from hybrid_trader.executors.execution_simulator import ExecutionSimulator
from hybrid_trader.hybrid_decision_provider import HybridTradingManager
from hybrid_trader.logger import DecisionLogger
from hybrid_trader.models import STRATEGY_IDS


class JSONFormatter(logging.Formatter):
    def format(self, record):
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def setup_logging(verbose: bool = False, json_logs: bool = False) -> None:
    """
    Configure logging for the application.

    Args:
        verbose: If True, set log level to DEBUG, otherwise INFO
        json_logs: If True, enable JSON structured logging
    """
    log_level = logging.DEBUG if verbose else logging.INFO

    Path("logs").mkdir(exist_ok=True)

    if json_logs:
        formatter = JSONFormatter()
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        date_format = "%Y-%m-%d %H:%M:%S"
        formatter = logging.Formatter(log_format, date_format)

    handlers = [
        logging.StreamHandler(sys.stdout),
        logging.FileHandler("logs/engine.log", mode="a")
    ]
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=log_level,
        handlers=handlers
    )

    if json_logs:
        json_handler = logging.FileHandler("logs/engine.json", mode="a")
        json_handler.setFormatter(formatter)
        logging.root.addHandler(json_handler)

    # ccxt logs every request at DEBUG
    logging.getLogger("ccxt").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def parse_arguments() -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="Hybrid Trader - regime-driven crypto strategy engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                                   # Paper trading with .env settings
  python main.py --mode backtest --data btc.csv    # Hybrid backtest of a candle file
  python main.py --mode backtest --data btc.csv --strategy SCALPING
  python main.py --mode backtest --data btc.csv --comprehensive --report report.md

Environment Variables:
  See .env.example for every supported variable.
        """
    )

    parser.add_argument("--env", type=str, default=".env", help="Path to environment file (default: .env)")
    parser.add_argument(
        "--mode",
        choices=["simulation", "backtest"],
        help="Override RUN_MODE from the environment"
    )
    parser.add_argument("--data", type=str, help="Candle CSV for backtest mode")
    parser.add_argument("--strategy", choices=STRATEGY_IDS, help="Backtest a single strategy")
    parser.add_argument(
        "--comprehensive",
        action="store_true",
        help="Run hybrid, per-strategy and walk-forward backtests"
    )
    parser.add_argument("--report", type=str, help="Write the markdown report to this path")
    parser.add_argument("--max-cycles", type=int, help="Stop the simulation loop after N cycles")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose (DEBUG) logging")
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Enable JSON structured logging (outputs to logs/engine.json)"
    )
    parser.add_argument("--version", action="version", version="Hybrid Trader v1.0.0")

    return parser.parse_args()


def run_backtest_mode(config: Config, args: argparse.Namespace) -> int:
    logger = logging.getLogger(__name__)

    if not args.data:
        logger.error("[ERROR] Backtest mode needs --data <candles.csv>")
        return 1
    try:
        candles = load_candles_csv(args.data)
    except (OSError, ValueError) as e:
        logger.error(f"[ERROR] Could not load candles: {e}")
        return 1

    harness = BacktestHarness(
        config=config.backtest_config(),
        risk_config=config.risk_config(),
        hysteresis_ms=config.hysteresis_ms,
    )

    if args.comprehensive:
        results = harness.run_comprehensive(candles)
        sections = [generate_report(results.overall)]
        sections += [generate_report(r) for r in results.strategies.values()]
        for window in results.walk_forward:
            logger.info(
                f"{window.strategy}: {window.total_trades} trades, "
                f"return {window.total_return:.2f}%, max DD {window.max_drawdown:.2f}%"
            )
        report = "\n".join(sections)
    elif args.strategy:
        report = generate_report(harness.run_strategy_backtest(candles, args.strategy))
    else:
        report = generate_report(harness.run_backtest(candles))

    if args.report:
        Path(args.report).write_text(report, encoding="utf-8")
        logger.info(f"[OK] Report written to {args.report}")
    else:
        print(report)
    return 0


def run_simulation_mode(config: Config, args: argparse.Namespace) -> int:
    logger = logging.getLogger(__name__)

    try:
        decision_logger = DecisionLogger(log_file=config.decision_log_path)
        exchange = create_exchange(config.exchange_id)
        fetcher = MarketDataFetcher(exchange)
        simulator = ExecutionSimulator(
            config=config.execution_config(),
            rng=random.Random(config.random_seed),
            decision_logger=decision_logger,
        )
        controller = CycleController(
            config,
            fetcher,
            lambda symbol: HybridTradingManager.from_config(config, decision_logger=decision_logger),
            simulator,
        )
        logger.info("[OK] Cycle controller initialized")
    except ValueError as e:
        logger.error(f"[ERROR] Initialization error: {e}")
        return 1

    controller.register_signal_handlers()

    try:
        controller.run(max_cycles=args.max_cycles)
    except KeyboardInterrupt:
        controller.shutdown()

    stats = simulator.get_detailed_stats()
    logger.info(f"Final account: {stats['account']}")
    return 0


def main() -> int:
    """
    Main entry point for the engine.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    args = parse_arguments()

    setup_logging(verbose=args.verbose, json_logs=args.json_logs)
    logger = logging.getLogger(__name__)

    logger.info("=" * 80)
    logger.info("HYBRID TRADER")
    logger.info("=" * 80)

    try:
        logger.info(f"Loading configuration from: {args.env}")
        if args.env != ".env":
            if not Path(args.env).exists():
                logger.error(f"Environment file not found: {args.env}")
                return 1
            load_dotenv(args.env, override=True)

        config = Config.from_env()
        if args.mode:
            config.run_mode = args.mode
        logger.info("[OK] Configuration loaded successfully")
    except ValueError as e:
        logger.error(f"[ERROR] Configuration error: {e}")
        return 1

    logger.info(f"Run mode: {config.run_mode.upper()} (paper trading only, no real orders)")

    if config.run_mode == "backtest":
        return run_backtest_mode(config, args)
    return run_simulation_mode(config, args)


if __name__ == "__main__":
    sys.exit(main())
