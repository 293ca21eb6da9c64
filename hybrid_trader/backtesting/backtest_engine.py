"""Backtest harness: replays candles through the hybrid trading manager."""

import logging
import random
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from hybrid_trader.backtesting.metrics import compute_backtest_result
from hybrid_trader.config import BacktestConfig, RiskConfig
from hybrid_trader.executors.slippage_model import FixedRateSlippageModel, SlippageModel
from hybrid_trader.hybrid_decision_provider import HybridTradingManager
from hybrid_trader.logger import DecisionLogger
from hybrid_trader.models import BUY, DIRECTIONAL_ACTIONS, STRATEGY_IDS, BacktestResult, Candle, Signal, TradeRecord
from hybrid_trader.snapshot_builders.market_snapshot_builder import MarketSnapshotBuilder
from hybrid_trader.strategy_selectors.strategy_selector import DEFAULT_HYSTERESIS_MS
from hybrid_trader.strategy_utils.position_sizing import calculate_risk_quantity

logger = logging.getLogger(__name__)

STOP_LOSS = "stop_loss"
TAKE_PROFIT = "take_profit"
TIMEOUT = "timeout"


def has_valid_exits(signal: Signal) -> bool:
    """True when stop and target are positive and on opposite sides of the entry."""
    if signal.entry_price <= 0 or signal.stop_loss <= 0 or signal.take_profit <= 0:
        return False
    if signal.action == BUY:
        return signal.stop_loss < signal.entry_price < signal.take_profit
    return signal.take_profit < signal.entry_price < signal.stop_loss


@dataclass
class ComprehensiveResult:
    overall: BacktestResult
    strategies: Dict[str, BacktestResult] = field(default_factory=dict)
    walk_forward: List[BacktestResult] = field(default_factory=list)


@dataclass
class StrategyValidation:
    strategy: str
    is_valid: bool
    score: int
    issues: List[str]
    recommendations: List[str]
    result: BacktestResult


class BacktestHarness:
    """
    Replays history through a fresh manager per run.

    Each step analyzes the window ending at candle i. A BUY/SELL above the
    confidence threshold opens a simulated trade that exits on the first
    later candle whose range crosses the stop or target (stop checked
    first), or at the last close of the lookahead window. The replay resumes
    after the exit candle, so trades never overlap.

    Runs are deterministic: every random draw comes from a generator seeded
    with `config.seed` and time comes from candle timestamps.
    """

    def __init__(
        self,
        config: Optional[BacktestConfig] = None,
        risk_config: Optional[RiskConfig] = None,
        hysteresis_ms: int = DEFAULT_HYSTERESIS_MS,
        manager_factory: Optional[Callable[[random.Random], HybridTradingManager]] = None,
        snapshot_builder: Optional[MarketSnapshotBuilder] = None,
        slippage_model: Optional[SlippageModel] = None
    ):
        """
        Initialize backtest harness.

        Args:
            config: Backtest settings
            risk_config: Risk limits for the replayed manager
            hysteresis_ms: Selector hysteresis for the replayed manager
            manager_factory: Builds a manager from a seeded generator (overrides the two above)
            snapshot_builder: Synthetic order books around each close
            slippage_model: Entry slippage (defaults to `config.slippage_rate`)
        """
        self.config = config or BacktestConfig()
        self.risk_config = risk_config or RiskConfig(initial_balance=self.config.initial_balance)
        self.hysteresis_ms = hysteresis_ms
        self.manager_factory = manager_factory or self._default_manager
        self.snapshot_builder = snapshot_builder or MarketSnapshotBuilder(depth=1)
        self.slippage_model = slippage_model or FixedRateSlippageModel(self.config.slippage_rate)

    def _default_manager(self, rng: random.Random) -> HybridTradingManager:
        return HybridTradingManager(
            risk_config=self.risk_config,
            hysteresis_ms=self.hysteresis_ms,
            clock=lambda: 0,
            rng=rng,
            decision_logger=DecisionLogger(keep_in_memory=False),
        )

    def run_backtest(
        self,
        candles: Sequence[Candle],
        label: str = "HYBRID",
        strategy_id: Optional[str] = None
    ) -> BacktestResult:
        """
        Replay candles through the hybrid pipeline.

        Args:
            candles: Time-ordered candles
            label: Name for the result
            strategy_id: Pin the selector to one strategy (None lets it choose)

        Returns:
            BacktestResult (empty when there are too few candles)
        """
        cfg = self.config
        manager = self.manager_factory(random.Random(cfg.seed))
        if strategy_id is not None:
            manager.pin_strategy(strategy_id)
        manager.update_balance(cfg.initial_balance)

        balance = cfg.initial_balance
        trades: List[TradeRecord] = []
        usage: Counter = Counter()
        resume_at = cfg.warmup

        for i in range(cfg.warmup, len(candles) - cfg.tail_reserve):
            steps = i - cfg.warmup
            if steps > 0 and steps % cfg.daily_reset_candles == 0:
                manager.reset_daily_loss()
            if i < resume_at:
                continue

            candle = candles[i]
            snapshot = self.snapshot_builder.build_synthetic(candle.close, cfg.symbol, candle.timestamp)
            signal = manager.analyze(candles[:i + 1], snapshot, cfg.symbol, now_ms=candle.timestamp)
            usage[manager.get_current_strategy()] += 1

            if signal.action not in DIRECTIONAL_ACTIONS or signal.confidence <= cfg.confidence_threshold:
                continue

            simulated = self._simulate_trade(signal, candles, i, balance, len(trades) + 1)
            if simulated is None:
                continue

            trade, exit_index = simulated
            trades.append(trade)
            balance += trade.profit
            manager.record_trade(trade.profit)
            resume_at = exit_index + 1

        total_steps = sum(usage.values())
        distribution = {sid: count / total_steps * 100 for sid, count in usage.items()} if total_steps else {}

        result = compute_backtest_result(trades, cfg.initial_balance, label, distribution)
        logger.info(
            f"Backtest {label}: {result.total_trades} trades, win rate {result.win_rate:.1f}%, "
            f"return {result.total_return:.2f}%, max DD {result.max_drawdown:.2f}%"
        )
        return result

    def _simulate_trade(
        self,
        signal: Signal,
        candles: Sequence[Candle],
        index: int,
        balance: float,
        sequence: int
    ) -> Optional[Tuple[TradeRecord, int]]:
        cfg = self.config
        future = candles[index + 1:index + 1 + cfg.lookahead]
        if not future:
            return None
        if not has_valid_exits(signal):
            logger.debug(
                f"Skipping {signal.action} from {signal.strategy}: stop {signal.stop_loss} / "
                f"target {signal.take_profit} do not bracket entry {signal.entry_price}"
            )
            return None

        quantity = calculate_risk_quantity(balance, cfg.risk_per_trade, signal.entry_price, signal.stop_loss)
        if quantity <= 0:
            return None

        is_long = signal.action == BUY
        entry_price = self.slippage_model.apply(
            price=signal.entry_price,
            side=signal.action,
            slippage=self.slippage_model.estimate(quantity=quantity, snapshot=None),
        )

        exit_price = future[-1].close
        exit_reason = TIMEOUT
        exit_offset = len(future) - 1
        for offset, candle in enumerate(future):
            if is_long:
                if candle.low <= signal.stop_loss:
                    exit_price, exit_reason = signal.stop_loss, STOP_LOSS
                elif candle.high >= signal.take_profit:
                    exit_price, exit_reason = signal.take_profit, TAKE_PROFIT
            else:
                if candle.high >= signal.stop_loss:
                    exit_price, exit_reason = signal.stop_loss, STOP_LOSS
                elif candle.low <= signal.take_profit:
                    exit_price, exit_reason = signal.take_profit, TAKE_PROFIT
            if exit_reason != TIMEOUT:
                exit_offset = offset
                break

        gross = (exit_price - entry_price) * quantity if is_long else (entry_price - exit_price) * quantity
        fees = (entry_price + exit_price) * quantity * cfg.fee_rate
        profit = gross - fees
        exit_index = index + 1 + exit_offset

        trade = TradeRecord(
            id=f"trade_{sequence}",
            strategy=signal.strategy,
            symbol=cfg.symbol,
            side=signal.action,
            entry_time=candles[index].timestamp,
            exit_time=candles[exit_index].timestamp,
            entry_price=entry_price,
            exit_price=exit_price,
            quantity=quantity,
            profit=profit,
            profit_percent=profit / (entry_price * quantity) * 100,
            fees=fees,
            slippage=abs(entry_price - signal.entry_price),
            hold_time=exit_offset + 1,
            exit_reason=exit_reason,
            confidence=signal.confidence,
        )
        logger.debug(
            f"{trade.id} {trade.side} {trade.strategy}: {entry_price:.2f} -> {exit_price:.2f} "
            f"({exit_reason}), net {profit:.2f}"
        )
        return trade, exit_index

    def run_strategy_backtest(self, candles: Sequence[Candle], strategy_id: str) -> BacktestResult:
        """
        Backtest a single strategy with regime selection disabled.

        Raises:
            ValueError: If the strategy id is unknown
        """
        if strategy_id not in STRATEGY_IDS:
            raise ValueError(f"Unknown strategy id: {strategy_id}")
        return self.run_backtest(candles, label=strategy_id, strategy_id=strategy_id)

    def run_walk_forward(self, candles: Sequence[Candle]) -> List[BacktestResult]:
        """
        Re-run the pipeline over overlapping windows.

        Windows of `walk_forward_window` candles start every
        `walk_forward_step` candles; each is an independent run.

        Returns:
            One result per window, labelled WALK_FORWARD_<start>
        """
        window = self.config.walk_forward_window
        step = self.config.walk_forward_step
        if window <= 0 or step <= 0:
            raise ValueError("Walk-forward window and step must be positive")

        return [
            self.run_backtest(candles[start:start + window], f"WALK_FORWARD_{start}")
            for start in range(0, len(candles) - window, step)
        ]

    def run_comprehensive(self, candles: Sequence[Candle]) -> ComprehensiveResult:
        """Hybrid run, one pinned run per strategy, and walk-forward windows."""
        logger.info(f"Starting comprehensive backtest over {len(candles)} candles")
        return ComprehensiveResult(
            overall=self.run_backtest(candles, "HYBRID"),
            strategies={sid: self.run_strategy_backtest(candles, sid) for sid in STRATEGY_IDS},
            walk_forward=self.run_walk_forward(candles),
        )

    def validate_strategy(self, strategy_id: str, candles: Sequence[Candle]) -> StrategyValidation:
        """
        Score a strategy's pinned backtest.

        Starts at 100: -20 win rate below 55%, -25 drawdown above 15%,
        -15 Sharpe below 1, -10 fewer than 10 trades. Valid when the score
        is at least 70 with no more than two issues.
        """
        result = self.run_strategy_backtest(candles, strategy_id)
        issues = []
        score = 100

        if result.win_rate < 55:
            issues.append("Low win rate")
            score -= 20
        if result.max_drawdown > 15:
            issues.append("High drawdown")
            score -= 25
        if result.sharpe_ratio < 1.0:
            issues.append("Weak risk-adjusted return")
            score -= 15
        if result.total_trades < 10:
            issues.append("Too few trades to evaluate")
            score -= 10

        recommendations = []
        if issues:
            recommendations.append("Tighten entry criteria")
            recommendations.append("Improve risk management")

        return StrategyValidation(
            strategy=strategy_id,
            is_valid=score >= 70 and len(issues) <= 2,
            score=score,
            issues=issues,
            recommendations=recommendations,
            result=result,
        )
