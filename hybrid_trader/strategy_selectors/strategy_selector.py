"""Strategy selection with hysteresis."""

import logging
import random
import time
from typing import Callable, Optional

from hybrid_trader.models import (
    GRID_DCA,
    ILLIQUID,
    MARKET_MAKING,
    MEAN_REVERSION,
    RANGING,
    SCALPING,
    STRATEGY_IDS,
    STRATEGY_NAMES,
    TREND_FOLLOWING,
    TRENDING,
    VOLATILE,
    MarketCondition,
)

logger = logging.getLogger(__name__)

DEFAULT_HYSTERESIS_MS = 300_000


class StrategySelector:
    """Maps market regimes to strategies and damps switching.

    The active strategy changes only when the optimal one differs and more
    than `hysteresis_ms` has passed since the previous change. The first
    change after construction or `reset()` is not delayed.
    """

    def __init__(
        self,
        hysteresis_ms: int = DEFAULT_HYSTERESIS_MS,
        rng: Optional[random.Random] = None,
        initial_strategy: str = TREND_FOLLOWING,
        clock: Optional[Callable[[], int]] = None,
        strong_trend: float = 0.25,
        low_volatility: float = 0.02,
        high_volatility: float = 0.03,
        high_liquidity: float = 1.2
    ):
        """
        Initialize strategy selector.

        Args:
            hysteresis_ms: Minimum time between strategy changes
            rng: Seeded generator for tie-breaks between equally suited strategies
            initial_strategy: Strategy active before the first change
            clock: Millisecond clock used when update() gets no timestamp
            strong_trend: Trend strength above which TRENDING picks trend following
            low_volatility: Volatility below which RANGING picks a range strategy
            high_volatility: Volatility above which VOLATILE picks a fast strategy
            high_liquidity: Relative volume above which VOLATILE picks a fast strategy
        """
        if initial_strategy not in STRATEGY_IDS:
            raise ValueError(f"Unknown strategy id: {initial_strategy}")

        self.hysteresis_ms = hysteresis_ms
        self.rng = rng or random.Random()
        self.initial_strategy = initial_strategy
        self.clock = clock or (lambda: int(time.time() * 1000))
        self.strong_trend = strong_trend
        self.low_volatility = low_volatility
        self.high_volatility = high_volatility
        self.high_liquidity = high_liquidity

        self.current_strategy = initial_strategy
        self.last_change: Optional[int] = None
        self.pinned_strategy: Optional[str] = None

    def select_optimal(self, condition: MarketCondition) -> str:
        """
        Pick the best suited strategy for a market condition.

        Args:
            condition: Classified market condition

        Returns:
            Strategy id
        """
        regime = condition.regime

        if regime == TRENDING and condition.trend_strength > self.strong_trend:
            return TREND_FOLLOWING
        if regime == RANGING and condition.volatility < self.low_volatility:
            return MEAN_REVERSION if self.rng.random() > 0.5 else GRID_DCA
        if (
            regime == VOLATILE
            and condition.liquidity > self.high_liquidity
            and condition.volatility > self.high_volatility
        ):
            return SCALPING if self.rng.random() > 0.5 else MARKET_MAKING
        if regime == ILLIQUID:
            return GRID_DCA

        return MEAN_REVERSION

    def update(self, condition: MarketCondition, now_ms: Optional[int] = None) -> str:
        """
        Advance the selector for one analysis cycle.

        Args:
            condition: Classified market condition
            now_ms: Current time in Unix milliseconds (defaults to the clock)

        Returns:
            Strategy id active for this cycle
        """
        if self.pinned_strategy is not None:
            return self.pinned_strategy

        optimal = self.select_optimal(condition)
        now = now_ms if now_ms is not None else self.clock()

        if optimal != self.current_strategy and (
            self.last_change is None or now - self.last_change > self.hysteresis_ms
        ):
            logger.info(
                f"Switching strategy {STRATEGY_NAMES[self.current_strategy]} -> "
                f"{STRATEGY_NAMES[optimal]} (regime {condition.regime})"
            )
            self.current_strategy = optimal
            self.last_change = now

        return self.current_strategy

    def pin(self, strategy_id: Optional[str]) -> None:
        """
        Force one strategy regardless of regime. None releases the pin.

        Raises:
            ValueError: If the strategy id is unknown
        """
        if strategy_id is not None and strategy_id not in STRATEGY_IDS:
            raise ValueError(f"Unknown strategy id: {strategy_id}")
        self.pinned_strategy = strategy_id
        if strategy_id is not None:
            self.current_strategy = strategy_id

    def reset(self) -> None:
        self.current_strategy = self.pinned_strategy or self.initial_strategy
        self.last_change = None
