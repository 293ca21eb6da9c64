from hybrid_trader.models import ILLIQUID, RANGING, TRENDING, VOLATILE
from hybrid_trader.regime_classifier import RegimeClassifier


def test_short_window_is_illiquid_with_zero_confidence(candles):
    condition = RegimeClassifier().classify(candles.uptrend(30))
    assert condition.regime == ILLIQUID
    assert condition.confidence == 0.0


def test_steady_trend_is_trending(candles):
    condition = RegimeClassifier().classify(candles.uptrend(120))
    assert condition.regime == TRENDING
    assert condition.confidence == 75.0
    assert condition.trend_strength > 0.25
    assert condition.volatility < 0.03


def test_tight_oscillation_is_ranging(candles):
    condition = RegimeClassifier().classify(candles.ranging(120))
    assert condition.regime == RANGING
    assert condition.confidence == 70.0


def test_flat_market_is_ranging(candles):
    condition = RegimeClassifier().classify(candles.flat(60))
    assert condition.regime == RANGING
    assert condition.volatility == 0.0


def test_large_swings_are_volatile(candles):
    condition = RegimeClassifier().classify(candles.volatile(120))
    assert condition.regime == VOLATILE
    assert condition.confidence == 65.0
    assert condition.volatility > 0.03


def test_volume_collapse_is_illiquid(candles):
    condition = RegimeClassifier().classify(candles.illiquid(120))
    assert condition.regime == ILLIQUID
    assert condition.confidence == 80.0
    assert condition.liquidity < 0.5


def test_classification_is_pure(candles):
    classifier = RegimeClassifier()
    data = candles.volatile(120)
    assert classifier.classify(data) == classifier.classify(data)
