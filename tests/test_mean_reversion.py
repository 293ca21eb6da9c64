from hybrid_trader.models import BUY, HOLD, SELL
from hybrid_trader.strategies.mean_reversion_strategy import MeanReversionStrategy


def _zigzag(n=30):
    return [100.0 if i % 2 == 0 else 101.0 for i in range(n)]


def test_buys_oversold_drop_below_lower_band(candles):
    data = candles.build(_zigzag() + [98.0, 95.0, 92.0, 89.0, 86.0])
    signal = MeanReversionStrategy().analyze(data)

    assert signal.action == BUY
    # RSI extreme + band touch
    assert signal.confidence == 70.0
    assert signal.metadata["rsi"] <= 30
    assert signal.take_profit == signal.metadata["bb_middle"]
    assert signal.stop_loss < signal.entry_price < signal.take_profit


def test_sells_overbought_rally_above_upper_band(candles):
    data = candles.build(_zigzag() + [102.0, 105.0, 108.0, 111.0, 114.0])
    signal = MeanReversionStrategy().analyze(data)

    assert signal.action == SELL
    assert signal.confidence >= 70.0
    assert signal.take_profit < signal.entry_price < signal.stop_loss


def test_holds_without_extremes(candles):
    signal = MeanReversionStrategy().analyze(candles.ranging(60))
    assert signal.action == HOLD
    assert "No extreme" in signal.reasons[0]


def test_equal_buy_and_sell_scores_hold(candles):
    # Zero-width bands: price touches both at once
    signal = MeanReversionStrategy().analyze(candles.flat(40))
    assert signal.action == HOLD
    assert signal.reasons == ("Conflicting extremes",)


def test_insufficient_data(candles):
    signal = MeanReversionStrategy().analyze(candles.ranging(10))
    assert signal.action == HOLD
    assert "Insufficient data" in signal.reasons[0]


def test_should_exit():
    strategy = MeanReversionStrategy()
    assert strategy.should_exit(BUY, 55.0)
    assert not strategy.should_exit(BUY, 40.0)
    assert strategy.should_exit(SELL, 58.0)
    assert not strategy.should_exit(SELL, 65.0)
    assert not strategy.should_exit(HOLD, 50.0)
