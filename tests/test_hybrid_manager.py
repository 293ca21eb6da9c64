import random

import pytest

from hybrid_trader.config import RiskConfig
from hybrid_trader.hybrid_decision_provider import HybridTradingManager, build_strategies
from hybrid_trader.logger import DecisionLogger
from hybrid_trader.models import (
    BUY,
    GRID_DCA,
    HOLD,
    MEAN_REVERSION,
    SCALPING,
    TREND_FOLLOWING,
    TRENDING,
)
from hybrid_trader.risk_manager import HIGH


def _manager(seed=1, **kwargs):
    return HybridTradingManager(rng=random.Random(seed), decision_logger=DecisionLogger(), clock=lambda: 0, **kwargs)


def test_trending_market_runs_trend_following(candles):
    manager = _manager()
    data = candles.uptrend(250)
    signal = manager.analyze(data, now_ms=data[-1].timestamp)

    assert signal.action == BUY
    assert signal.strategy == TREND_FOLLOWING
    assert signal.reasons[0] == "Strategy: Trend Following"
    assert signal.reasons[1] == f"Regime: {TRENDING}"
    assert signal.market_condition.regime == TRENDING
    assert signal.risk_level is not None
    assert manager.get_current_strategy() == TREND_FOLLOWING


def test_every_analysis_is_logged(candles):
    manager = _manager()
    data = candles.uptrend(250)
    manager.analyze(data, symbol="ETHUSDT", now_ms=123)

    decisions = manager.decision_logger.get_entries("decision")
    assert len(decisions) == 1
    entry = decisions[0]
    assert entry["symbol"] == "ETHUSDT"
    assert entry["timestamp"] == 123
    assert entry["strategy"] == TREND_FOLLOWING
    assert entry["regime"] == TRENDING
    assert entry["processing_time_ms"] >= 0


def test_short_history_selects_grid_and_holds(candles):
    manager = _manager()
    signal = manager.analyze(candles.uptrend(10), now_ms=0)
    assert manager.get_current_strategy() == GRID_DCA
    assert signal.action == HOLD


def test_risk_halt_short_circuits(candles):
    manager = _manager(risk_config=RiskConfig(max_daily_loss=100.0))
    manager.record_trade(-200.0)
    data = candles.uptrend(250)

    gated = manager.analyze(data, now_ms=0)
    assert gated.action == HOLD
    assert gated.risk_level == HIGH
    assert manager.get_risk_state().should_stop
    assert manager.decision_logger.get_entries("risk")

    halted = manager.analyze(data, now_ms=60_000)
    assert halted.action == HOLD
    assert halted.confidence == 0.0
    assert halted.reasons == ("Trading halted: risk limits exceeded",)
    # No new decision entry while halted
    assert len(manager.decision_logger.get_entries("decision")) == 1

    manager.reset_daily_loss()
    assert manager.analyze(data, now_ms=120_000).action == BUY


def test_same_seed_same_decisions(candles):
    data = candles.ranging(150)
    runs = []
    for _ in range(2):
        manager = _manager(seed=3, hysteresis_ms=0)
        runs.append([
            (manager.analyze(data[:i], now_ms=i * 60_000).strategy, manager.get_current_strategy())
            for i in range(60, 150)
        ])
    assert runs[0] == runs[1]


def test_pinned_strategy_ignores_regime(candles):
    manager = _manager()
    manager.pin_strategy(SCALPING)
    signal = manager.analyze(candles.uptrend(250), now_ms=0)
    assert signal.strategy == SCALPING
    assert signal.reasons[0] == "Strategy: Scalping"


def test_balance_flows_to_strategy_sizing(candles):
    manager = _manager()
    manager.update_balance(20000.0)
    assert manager.get_strategy(TREND_FOLLOWING).config.account_balance == 20000.0
    manager.record_trade(-500.0)
    assert manager.get_strategy(GRID_DCA).config.account_balance == 19500.0


def test_reset_clears_strategy_state(candles):
    manager = _manager()
    manager.analyze(candles.uptrend(10), now_ms=0)
    grid = manager.get_strategy(GRID_DCA)
    assert grid.state.initialized

    manager.reset()
    assert not grid.state.initialized
    assert manager.get_current_strategy() == TREND_FOLLOWING


def test_strategy_table_must_be_complete():
    strategies = build_strategies()
    del strategies[SCALPING]
    with pytest.raises(ValueError):
        HybridTradingManager(strategies=strategies)


def test_unknown_strategy_lookup_raises():
    with pytest.raises(ValueError):
        _manager().get_strategy("NOPE")


def test_risk_per_trade_reaches_the_sizing_strategies():
    manager = _manager(risk_config=RiskConfig(risk_per_trade=2.0))
    for strategy_id in (TREND_FOLLOWING, MEAN_REVERSION, SCALPING):
        assert manager.get_strategy(strategy_id).config.risk_per_trade == pytest.approx(0.02)
