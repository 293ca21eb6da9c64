import pytest

from hybrid_trader.models import BUY, HOLD, SELL
from hybrid_trader.snapshot_builders.market_snapshot_builder import MarketSnapshotBuilder
from hybrid_trader.strategies.scalping_strategy import ScalpingStrategy

CHOPPY_THEN_UP = [
    100.0, 99.5, 100.2, 99.6, 100.1, 99.4, 99.9, 99.3,
    99.8, 99.2, 99.7, 99.1, 99.5, 99.9, 100.3,
]
LIQUID = [20000.0] * len(CHOPPY_THEN_UP)


def test_buys_momentum_in_liquid_tight_market(candles):
    data = candles.build(CHOPPY_THEN_UP, volumes=LIQUID)
    signal = ScalpingStrategy().analyze(data, now_ms=10_000)

    assert signal.action == BUY
    assert signal.confidence >= 55.0
    assert signal.stop_loss == pytest.approx(100.3 * 0.996)
    assert signal.take_profit == pytest.approx(100.3 * 1.003)
    assert signal.metadata["spread"] == 0.02
    assert signal.metadata["risk_reward"] == pytest.approx(0.75)
    assert signal.metadata["expected_profit"] > 0


def test_sells_mirrored_move(candles):
    data = candles.build([200.0 - c for c in CHOPPY_THEN_UP], volumes=LIQUID)
    signal = ScalpingStrategy().analyze(data, now_ms=10_000)
    assert signal.action == SELL
    assert signal.take_profit < signal.entry_price < signal.stop_loss


def test_rate_limits_signals(candles):
    data = candles.build(CHOPPY_THEN_UP, volumes=LIQUID)
    strategy = ScalpingStrategy()

    assert strategy.analyze(data, now_ms=10_000).action == BUY
    cooling = strategy.analyze(data, now_ms=11_000)
    assert cooling.action == HOLD
    assert "Cooling down" in cooling.reasons[0]
    assert strategy.analyze(data, now_ms=16_000).action == BUY


def test_hold_does_not_start_cooldown(candles):
    strategy = ScalpingStrategy()
    thin = candles.build(CHOPPY_THEN_UP, volumes=[100.0] * len(CHOPPY_THEN_UP))
    assert strategy.analyze(thin, now_ms=10_000).action == HOLD
    assert strategy.last_signal_time is None


def test_filters_low_volume(candles):
    data = candles.build(CHOPPY_THEN_UP, volumes=[100.0] * len(CHOPPY_THEN_UP))
    signal = ScalpingStrategy().analyze(data, now_ms=0)
    assert signal.action == HOLD
    assert "Volume too low" in signal.reasons[0]


def test_filters_wide_spread(candles):
    data = candles.build(CHOPPY_THEN_UP, volumes=LIQUID)
    # 0.1% spread is above the 0.05% ceiling
    snapshot = MarketSnapshotBuilder().build_synthetic(data[-1].close)
    signal = ScalpingStrategy().analyze(data, snapshot, now_ms=0)
    assert signal.action == HOLD
    assert "Spread too wide" in signal.reasons[0]


def test_tight_snapshot_passes_spread_filter(candles):
    data = candles.build(CHOPPY_THEN_UP, volumes=LIQUID)
    snapshot = MarketSnapshotBuilder(half_spread=0.0001).build_synthetic(data[-1].close)
    signal = ScalpingStrategy().analyze(data, snapshot, now_ms=0)
    assert signal.action == BUY


def test_insufficient_data(candles):
    signal = ScalpingStrategy().analyze(candles.build(CHOPPY_THEN_UP[:5], volumes=LIQUID[:5]), now_ms=0)
    assert signal.action == HOLD
    assert "Insufficient data" in signal.reasons[0]


def test_reset_clears_cooldown(candles):
    data = candles.build(CHOPPY_THEN_UP, volumes=LIQUID)
    strategy = ScalpingStrategy()
    strategy.analyze(data, now_ms=10_000)
    strategy.reset()
    assert strategy.analyze(data, now_ms=10_500).action == BUY
