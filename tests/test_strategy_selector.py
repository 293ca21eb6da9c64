import random

import pytest

from hybrid_trader.models import (
    GRID_DCA,
    ILLIQUID,
    MARKET_MAKING,
    MEAN_REVERSION,
    RANGING,
    SCALPING,
    TREND_FOLLOWING,
    TRENDING,
    VOLATILE,
    MarketCondition,
)
from hybrid_trader.strategy_selectors.strategy_selector import StrategySelector


def _condition(regime, volatility=0.01, trend_strength=0.5, liquidity=1.0):
    return MarketCondition(
        volatility=volatility,
        trend_strength=trend_strength,
        liquidity=liquidity,
        regime=regime,
        confidence=70.0,
    )


def test_regime_table():
    selector = StrategySelector(rng=random.Random(1))
    assert selector.select_optimal(_condition(TRENDING, trend_strength=0.4)) == TREND_FOLLOWING
    assert selector.select_optimal(_condition(ILLIQUID)) == GRID_DCA
    assert selector.select_optimal(_condition(RANGING, volatility=0.01)) in (MEAN_REVERSION, GRID_DCA)
    assert selector.select_optimal(
        _condition(VOLATILE, volatility=0.05, liquidity=1.5)
    ) in (SCALPING, MARKET_MAKING)


def test_fallbacks_to_mean_reversion():
    selector = StrategySelector(rng=random.Random(1))
    # Weak trend
    assert selector.select_optimal(_condition(TRENDING, trend_strength=0.2)) == MEAN_REVERSION
    # Volatile but thin
    assert selector.select_optimal(_condition(VOLATILE, volatility=0.05, liquidity=0.9)) == MEAN_REVERSION
    # Ranging but too volatile
    assert selector.select_optimal(_condition(RANGING, volatility=0.025)) == MEAN_REVERSION


def test_tie_breaks_are_reproducible():
    condition = _condition(RANGING, volatility=0.01)
    first = StrategySelector(rng=random.Random(7))
    second = StrategySelector(rng=random.Random(7))
    picks_first = [first.select_optimal(condition) for _ in range(20)]
    picks_second = [second.select_optimal(condition) for _ in range(20)]
    assert picks_first == picks_second
    assert set(picks_first) == {MEAN_REVERSION, GRID_DCA}


def test_first_switch_is_immediate_then_hysteresis_applies():
    selector = StrategySelector(hysteresis_ms=300_000, rng=random.Random(1))
    assert selector.current_strategy == TREND_FOLLOWING

    assert selector.update(_condition(ILLIQUID), now_ms=0) == GRID_DCA
    trending = _condition(TRENDING, trend_strength=0.5)
    assert selector.update(trending, now_ms=100_000) == GRID_DCA
    # Strictly greater than the hysteresis window
    assert selector.update(trending, now_ms=300_000) == GRID_DCA
    assert selector.update(trending, now_ms=300_001) == TREND_FOLLOWING


def test_no_change_does_not_restart_timer():
    selector = StrategySelector(hysteresis_ms=1_000, rng=random.Random(1))
    selector.update(_condition(ILLIQUID), now_ms=0)
    assert selector.last_change == 0
    selector.update(_condition(ILLIQUID), now_ms=5_000)
    assert selector.last_change == 0


def test_pin_overrides_regime():
    selector = StrategySelector(rng=random.Random(1))
    selector.pin(SCALPING)
    assert selector.update(_condition(ILLIQUID), now_ms=0) == SCALPING
    selector.pin(None)
    assert selector.update(_condition(ILLIQUID), now_ms=0) == GRID_DCA


def test_reset_restores_initial_strategy():
    selector = StrategySelector(rng=random.Random(1))
    selector.update(_condition(ILLIQUID), now_ms=0)
    selector.reset()
    assert selector.current_strategy == TREND_FOLLOWING
    assert selector.last_change is None


def test_unknown_strategy_ids_raise():
    with pytest.raises(ValueError):
        StrategySelector(initial_strategy="NOPE")
    with pytest.raises(ValueError):
        StrategySelector().pin("NOPE")
