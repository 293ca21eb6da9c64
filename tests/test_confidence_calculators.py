import pytest

from hybrid_trader.strategy_utils import confidence_calculators as cc


def test_cap_confidence():
    assert cc.cap_confidence(120.0) == 95.0
    assert cc.cap_confidence(-5.0) == 0.0
    assert cc.cap_confidence(70.0) == 70.0


def test_volume_spike_uses_prior_average():
    assert cc.is_volume_spike([100.0] * 20 + [200.0], window=20, multiplier=1.5)
    assert not cc.is_volume_spike([100.0] * 20 + [140.0], window=20, multiplier=1.5)
    assert not cc.is_volume_spike([100.0], window=20, multiplier=1.5)
    assert not cc.is_volume_spike([0.0, 0.0, 10.0], window=20, multiplier=1.5)


def test_range_pct():
    assert cc.range_pct([105.0, 110.0], [100.0, 102.0], window=20) == pytest.approx(10.0)
    assert cc.range_pct([], [], window=20) == 0.0


def test_momentum_and_volatility():
    closes = [100.0, 101.0, 102.0, 103.0, 104.0, 110.0]
    assert cc.momentum(closes, 5) == pytest.approx(0.1)
    assert cc.momentum(closes, 10) == 0.0
    assert cc.log_return_volatility([100.0] * 12) == 0.0
    assert cc.log_return_volatility([100.0, 101.0, 100.0, 101.0]) > 0
