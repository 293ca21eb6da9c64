"""Hybrid trading manager: regime-driven strategy selection behind a risk gate."""

import logging
import random
import time
from dataclasses import replace
from typing import Callable, Dict, Optional, Sequence

from hybrid_trader.config import Config, RiskConfig
from hybrid_trader.logger import DecisionLogger
from hybrid_trader.models import (
    GRID_DCA,
    HOLD,
    ILLIQUID,
    MARKET_MAKING,
    MEAN_REVERSION,
    SCALPING,
    STRATEGY_NAMES,
    TREND_FOLLOWING,
    Candle,
    DecisionLogEntry,
    MarketCondition,
    MarketSnapshot,
    RiskLogEntry,
    RiskState,
    Signal,
)
from hybrid_trader.regime_classifier import RegimeClassifier
from hybrid_trader.risk_manager import HIGH, RiskManager
from hybrid_trader.strategies.grid_dca_strategy import GridDCAStrategy
from hybrid_trader.strategies.market_making_strategy import MarketMakingStrategy
from hybrid_trader.strategies.mean_reversion_strategy import MeanReversionConfig, MeanReversionStrategy
from hybrid_trader.strategies.scalping_strategy import ScalpingConfig, ScalpingStrategy
from hybrid_trader.strategies.trend_following_strategy import TrendFollowingConfig, TrendFollowingStrategy
from hybrid_trader.strategy import Strategy
from hybrid_trader.strategy_selectors.strategy_selector import DEFAULT_HYSTERESIS_MS, StrategySelector

logger = logging.getLogger(__name__)


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


def build_strategies(clock: Optional[Callable[[], int]] = None, risk_per_trade: float = 0.01) -> Dict[str, Strategy]:
    """
    Create one instance of each strategy with default parameters.

    Args:
        clock: Millisecond clock shared by the rate-limited strategies
        risk_per_trade: Fraction of balance risked by the stop-sized strategies

    Returns:
        Strategy table keyed by strategy id
    """
    return {
        TREND_FOLLOWING: TrendFollowingStrategy(TrendFollowingConfig(risk_per_trade=risk_per_trade)),
        MEAN_REVERSION: MeanReversionStrategy(MeanReversionConfig(risk_per_trade=risk_per_trade)),
        GRID_DCA: GridDCAStrategy(),
        SCALPING: ScalpingStrategy(ScalpingConfig(risk_per_trade=risk_per_trade), clock=clock),
        MARKET_MAKING: MarketMakingStrategy(clock=clock),
    }


class HybridTradingManager:
    """
    Regime-driven strategy engine.

    Each analyze() call:
    1. Short-circuits to a stop signal while the risk manager is halted
    2. Classifies the candle window into a market regime
    3. Lets the selector pick the active strategy (with hysteresis)
    4. Runs that strategy and passes its signal through the risk gate
    5. Annotates the result with strategy, regime and risk level and logs it

    One manager owns one RiskState and is meant for one trading loop.
    """

    def __init__(
        self,
        risk_config: Optional[RiskConfig] = None,
        hysteresis_ms: int = DEFAULT_HYSTERESIS_MS,
        clock: Optional[Callable[[], int]] = None,
        rng: Optional[random.Random] = None,
        decision_logger: Optional[DecisionLogger] = None,
        strategies: Optional[Dict[str, Strategy]] = None,
        classifier: Optional[RegimeClassifier] = None
    ):
        """
        Initialize hybrid trading manager.

        Args:
            risk_config: Risk limits
            hysteresis_ms: Minimum time between strategy changes
            clock: Millisecond clock used when analyze() gets no timestamp
            rng: Seeded generator for selector tie-breaks
            decision_logger: Collaborator receiving decision and risk records
            strategies: Strategy table keyed by id (defaults to all five)
            classifier: Regime classifier
        """
        self.clock = clock or _wall_clock_ms
        self.rng = rng or random.Random()
        self.decision_logger = decision_logger or DecisionLogger()
        self.risk_manager = RiskManager(risk_config)
        if strategies is None:
            # RiskConfig holds a percentage
            strategies = build_strategies(self.clock, self.risk_manager.config.risk_per_trade / 100)
        self.strategies = strategies
        self.classifier = classifier or RegimeClassifier()
        self.selector = StrategySelector(hysteresis_ms=hysteresis_ms, rng=self.rng, clock=self.clock)

        missing = [sid for sid in STRATEGY_NAMES if sid not in self.strategies]
        if missing:
            raise ValueError(f"Strategy table is missing: {', '.join(missing)}")

    @classmethod
    def from_config(
        cls,
        config: Config,
        decision_logger: Optional[DecisionLogger] = None,
        clock: Optional[Callable[[], int]] = None
    ) -> "HybridTradingManager":
        """Build a manager from the environment configuration."""
        manager = cls(
            risk_config=config.risk_config(),
            hysteresis_ms=config.hysteresis_ms,
            clock=clock,
            rng=random.Random(config.random_seed),
            decision_logger=decision_logger,
        )
        manager.update_balance(config.initial_balance)
        return manager

    def analyze(
        self,
        candles: Sequence[Candle],
        snapshot: Optional[MarketSnapshot] = None,
        symbol: str = "BTCUSDT",
        now_ms: Optional[int] = None
    ) -> Signal:
        """
        Produce the final, risk-gated signal for the latest candle.

        Args:
            candles: Time-ordered candles, newest last
            snapshot: Current order book (needed by scalping and market making)
            symbol: Trading pair symbol
            now_ms: Current time in Unix milliseconds (defaults to the clock)

        Returns:
            Signal annotated with market condition and risk level
        """
        started = time.perf_counter()
        now = now_ms if now_ms is not None else self.clock()

        if self.risk_manager.state.should_stop:
            return self._stop_signal(now)

        condition = self.classifier.classify(candles)
        strategy_id = self.selector.update(condition, now)
        strategy = self.get_strategy(strategy_id)

        raw_signal = strategy.analyze(candles, snapshot, symbol, now)
        gated = self.risk_manager.apply(raw_signal, condition)
        risk_level = self.risk_manager.calculate_risk_level(gated, condition)

        final = replace(
            gated,
            reasons=(
                f"Strategy: {STRATEGY_NAMES[strategy_id]}",
                f"Regime: {condition.regime}",
            ) + gated.reasons,
            market_condition=condition,
            risk_level=risk_level,
        )

        processing_ms = (time.perf_counter() - started) * 1000
        self.decision_logger.log_decision(DecisionLogEntry(
            timestamp=now,
            symbol=symbol,
            strategy=strategy_id,
            regime=condition.regime,
            volatility=condition.volatility,
            trend_strength=condition.trend_strength,
            liquidity=condition.liquidity,
            regime_confidence=condition.confidence,
            decision=final.action,
            confidence=final.confidence,
            reasons=list(final.reasons),
            processing_time_ms=processing_ms,
        ))

        if gated.action != raw_signal.action or gated.quantity != raw_signal.quantity:
            state = self.risk_manager.state
            self.decision_logger.log_risk(RiskLogEntry(
                timestamp=now,
                current_drawdown=state.current_drawdown,
                daily_loss=state.daily_loss,
                position_size=state.position_size,
                risk_level=risk_level,
                approved=gated.action != HOLD,
                reason=gated.reasons[-1] if gated.reasons else "",
            ))

        logger.debug(
            f"{symbol}: {STRATEGY_NAMES[strategy_id]} -> {final.action} "
            f"(conf {final.confidence:.0f}, regime {condition.regime}, risk {risk_level})"
        )
        return final

    def _stop_signal(self, now: int) -> Signal:
        state = self.risk_manager.state
        reason = "Trading halted: risk limits exceeded"
        self.decision_logger.log_risk(RiskLogEntry(
            timestamp=now,
            current_drawdown=state.current_drawdown,
            daily_loss=state.daily_loss,
            position_size=state.position_size,
            risk_level=HIGH,
            approved=False,
            reason=reason,
        ))
        return Signal(
            strategy=self.selector.current_strategy,
            action=HOLD,
            confidence=0.0,
            reasons=(reason,),
            market_condition=MarketCondition(
                volatility=0.0,
                trend_strength=0.0,
                liquidity=0.0,
                regime=ILLIQUID,
                confidence=0.0,
            ),
            risk_level=HIGH,
        )

    def get_strategy(self, strategy_id: str) -> Strategy:
        """
        Look up a strategy by id.

        Raises:
            ValueError: If the id is not in the strategy table
        """
        strategy = self.strategies.get(strategy_id)
        if strategy is None:
            raise ValueError(f"Unknown strategy id: {strategy_id}")
        return strategy

    def get_current_strategy(self) -> str:
        return self.selector.current_strategy

    def get_risk_state(self) -> RiskState:
        return self.risk_manager.get_state()

    def pin_strategy(self, strategy_id: Optional[str]) -> None:
        """Run a single strategy regardless of regime (None restores selection)."""
        self.selector.pin(strategy_id)

    def record_trade(self, profit: float, balance: Optional[float] = None) -> None:
        self.risk_manager.record_trade(profit, balance)
        self._sync_strategy_balance(self.risk_manager.state.account_balance)

    def update_position_size(self, position_pct: float) -> None:
        self.risk_manager.update_position_size(position_pct)

    def update_balance(self, balance: float) -> None:
        self.risk_manager.update_balance(balance)
        self._sync_strategy_balance(balance)

    def reset_daily_loss(self) -> None:
        self.risk_manager.reset_daily_loss()

    def reset_account(self) -> None:
        self.risk_manager.reset_account()
        self._sync_strategy_balance(self.risk_manager.state.account_balance)

    def reset(self) -> None:
        """Clear strategy state and hysteresis for a new independent run."""
        for strategy in self.strategies.values():
            strategy.reset()
        self.selector.reset()

    def _sync_strategy_balance(self, balance: float) -> None:
        for strategy in self.strategies.values():
            strategy_config = getattr(strategy, "config", None)
            if strategy_config is not None and hasattr(strategy_config, "account_balance"):
                strategy_config.account_balance = balance
