"""Cycle controller for the simulation trading loop."""

import asyncio
import logging
import signal
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from hybrid_trader.config import Config
from hybrid_trader.data_fetchers.market_data_fetcher import MarketDataFetcher
from hybrid_trader.executors.execution_simulator import ExecutionSimulator
from hybrid_trader.hybrid_decision_provider import HybridTradingManager
from hybrid_trader.models import BUY, FILLED, PARTIALLY_FILLED, SELL, MarketSnapshot, Order, OrderRequest, Signal
from hybrid_trader.portfolio.paper_account import split_symbol
from hybrid_trader.snapshot_builders.market_snapshot_builder import MarketSnapshotBuilder

logger = logging.getLogger(__name__)


class CycleController:
    """Runs analyze-and-execute cycles until shut down.

    Per cycle and symbol: fetch candles and order book, ask that symbol's
    manager for a signal, and send actionable BUY/SELL signals to the
    execution simulator. Each symbol gets its own manager, so grid state,
    rate limits, hysteresis and risk bookkeeping never mix between pairs.
    Fills are reported back to the owning manager's risk state.
    """

    def __init__(
        self,
        config: Config,
        data_fetcher: MarketDataFetcher,
        manager_factory: Callable[[str], HybridTradingManager],
        simulator: ExecutionSimulator,
        snapshot_builder: Optional[MarketSnapshotBuilder] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize cycle controller.

        Args:
            config: Configuration object
            data_fetcher: Source of candles and order books
            manager_factory: Builds the manager for one symbol
            simulator: Paper execution simulator
            snapshot_builder: Builds a synthetic book when the exchange returns none
            sleep: Sleep function between cycles
        """
        self.config = config
        self.data_fetcher = data_fetcher
        self.managers: Dict[str, HybridTradingManager] = {
            symbol: manager_factory(symbol) for symbol in config.symbols
        }
        self.simulator = simulator
        self.snapshot_builder = snapshot_builder or MarketSnapshotBuilder()
        self.sleep = sleep

        self.current_day: Optional[int] = None
        self.last_prices: Dict[str, float] = {}
        self.running = True

        logger.info("Cycle controller initialized successfully")

    def run(self, max_cycles: Optional[int] = None) -> None:
        """
        Execute cycles in a continuous loop.

        Errors inside a cycle are logged and the loop continues.

        Args:
            max_cycles: Stop after this many cycles (None runs until shutdown)
        """
        cycle_count = 0

        while self.running:
            cycle_count += 1
            cycle_start_time = time.time()

            if cycle_count == 1 or cycle_count % 5 == 0:
                logger.info(f"CYCLE {cycle_count} - {datetime.now(timezone.utc).strftime('%H:%M:%S')}")

            try:
                self.run_cycle()
            except Exception as e:
                logger.error(f"Cycle {cycle_count} failed: {e}", exc_info=True)
                logger.info("Continuing to next cycle...")

            if max_cycles is not None and cycle_count >= max_cycles:
                break
            if self.running:
                self._sleep_until_next_cycle(cycle_start_time)

        logger.info(f"Trading loop stopped after {cycle_count} cycles")

    def run_cycle(self) -> Dict[str, Signal]:
        """
        Process every configured symbol once.

        Returns:
            Final signal per symbol
        """
        self._roll_trading_day()
        signals = {}
        for symbol in self.config.symbols:
            signals[symbol] = self.process_symbol(symbol)
        return signals

    def process_symbol(self, symbol: str) -> Signal:
        """
        Analyze one symbol and execute its signal if actionable.

        Args:
            symbol: Trading pair symbol

        Returns:
            Final signal from the manager
        """
        candles = self.data_fetcher.fetch_candles(symbol, self.config.candle_interval, self.config.candle_limit)
        snapshot = self.data_fetcher.fetch_order_book(symbol, self.config.order_book_depth)

        if snapshot is None and candles:
            snapshot = self.snapshot_builder.build_synthetic(candles[-1].close, symbol, candles[-1].timestamp)
        if candles:
            self.last_prices[symbol] = candles[-1].close

        manager = self.managers[symbol]
        signal = manager.analyze(candles, snapshot, symbol)
        logger.info(
            f"  {symbol}: {signal.action} (conf {signal.confidence:.0f}, "
            f"risk {signal.risk_level}) - {'; '.join(signal.reasons[:3])}"
        )

        if snapshot is not None and self._is_actionable(signal):
            self._execute_signal(manager, symbol, signal, snapshot)

        return signal

    def _is_actionable(self, signal: Signal) -> bool:
        return (
            signal.action in (BUY, SELL)
            and signal.confidence > self.config.confidence_threshold
            and signal.quantity > 0
        )

    def _execute_signal(
        self,
        manager: HybridTradingManager,
        symbol: str,
        signal: Signal,
        snapshot: MarketSnapshot
    ) -> Optional[Order]:
        account = self.simulator.account
        quantity = signal.quantity

        if signal.action == SELL:
            base, _ = split_symbol(symbol)
            quantity = min(quantity, account.balance(base))
            if quantity <= 0:
                logger.info(f"  {symbol}: SELL skipped, no {base} held")
                return None
        else:
            approved, reason = manager.risk_manager.check_position_size(quantity * snapshot.ask)
            if not approved:
                logger.info(f"  {symbol}: BUY skipped, {reason}")
                return None

        realized_before = account.realized_pnl
        request = OrderRequest(symbol=symbol, side=signal.action, quantity=quantity)
        order = asyncio.run(self.simulator.place_order(request, snapshot))

        if order.status in (FILLED, PARTIALLY_FILLED):
            total_value = account.mark_to_market(self.last_prices)
            realized = account.realized_pnl - realized_before
            manager.record_trade(realized, balance=total_value)
            manager.update_position_size(self._position_pct(symbol, total_value))
        return order

    def _position_pct(self, symbol: str, total_value: float) -> float:
        """Value of the symbol's base holdings as a percent of the account."""
        if total_value <= 0:
            return 0.0
        base, _ = split_symbol(symbol)
        held_value = self.simulator.account.balance(base) * self.last_prices.get(symbol, 0.0)
        return max(0.0, held_value / total_value * 100)

    def _roll_trading_day(self) -> None:
        current_day = datetime.now(timezone.utc).toordinal()
        if self.current_day is not None and current_day != self.current_day:
            logger.info("New UTC day - resetting daily loss")
            for manager in self.managers.values():
                manager.reset_daily_loss()
        self.current_day = current_day

    def _sleep_until_next_cycle(self, cycle_start_time: float) -> None:
        """Sleep until the next cycle based on configured interval."""
        cycle_duration = time.time() - cycle_start_time
        sleep_time = max(0, self.config.loop_interval_seconds - cycle_duration)

        if sleep_time > 0:
            logger.debug(f"Sleeping for {sleep_time:.1f} seconds until next cycle")
            self.sleep(sleep_time)
        else:
            logger.warning(f"Cycle took {cycle_duration:.1f}s, longer than interval {self.config.loop_interval_seconds}s")

    def shutdown(self) -> None:
        """Stop after the current cycle; cycles are atomic so nothing is rolled back."""
        if self.running:
            logger.info("Shutdown requested, finishing the current cycle")
        self.running = False

    def register_signal_handlers(self) -> None:
        """Stop the loop on SIGINT (Ctrl+C) or SIGTERM."""
        def handle(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}")
            self.shutdown()

        signal.signal(signal.SIGINT, handle)
        signal.signal(signal.SIGTERM, handle)
        logger.debug("Signal handlers registered (SIGINT, SIGTERM)")
