"""Technical indicator calculations over price and volume arrays."""

import logging
from typing import Dict, List, NamedTuple, Sequence

import pandas as pd

from hybrid_trader.models import Candle

logger = logging.getLogger(__name__)


class MACDResult(NamedTuple):
    macd: float
    signal: float
    histogram: float


class BollingerBands(NamedTuple):
    upper: float
    middle: float
    lower: float


class StochasticResult(NamedTuple):
    k: float
    d: float


def _series(values: Sequence[float]) -> pd.Series:
    return pd.Series(list(values), dtype="float64")


def sma(values: Sequence[float], period: int) -> float:
    """
    Simple moving average of the last `period` values.

    Averages whatever is available when the window is shorter than `period`.
    """
    if len(values) == 0:
        return 0.0
    return float(_series(values).tail(period).mean())


def ema_series(values: Sequence[float], period: int) -> pd.Series:
    """EMA seeded with the first value, multiplier 2 / (period + 1)."""
    return _series(values).ewm(span=period, adjust=False).mean()


def ema(values: Sequence[float], period: int) -> float:
    if len(values) == 0:
        return 0.0
    return float(ema_series(values, period).iloc[-1])


def stddev(values: Sequence[float], period: int = 0) -> float:
    """Population standard deviation of the last `period` values (all values when period is 0)."""
    if len(values) == 0:
        return 0.0
    window = _series(values)
    if period > 0:
        window = window.tail(period)
    return float(window.std(ddof=0))


def rsi(prices: Sequence[float], period: int = 14) -> float:
    """
    Relative Strength Index with Wilder smoothing.

    The first average gain/loss is the plain mean over the first `period`
    changes, after which each new change is blended in with weight 1/period.

    Args:
        prices: Closing prices, oldest first
        period: Lookback period

    Returns:
        RSI in [0, 100]; 50 when there are not more than `period` prices or
        the window has no movement at all
    """
    if len(prices) <= period:
        return 50.0

    deltas = _series(prices).diff().iloc[1:]
    gains = deltas.clip(lower=0.0)
    losses = (-deltas).clip(lower=0.0)

    avg_gain = float(gains.iloc[:period].mean())
    avg_loss = float(losses.iloc[:period].mean())

    for gain, loss in zip(gains.iloc[period:], losses.iloc[period:]):
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period

    if avg_gain == 0 and avg_loss == 0:
        return 50.0
    if avg_loss == 0:
        return 100.0

    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


def macd(prices: Sequence[float], fast: int = 12, slow: int = 26, signal: int = 9) -> MACDResult:
    """
    MACD line, signal line and histogram.

    The signal line is an EMA of the full MACD series, not of its last value.
    Returns all zeros when there are fewer than `slow` prices.
    """
    if len(prices) < slow:
        return MACDResult(0.0, 0.0, 0.0)

    closes = _series(prices)
    macd_line = closes.ewm(span=fast, adjust=False).mean() - closes.ewm(span=slow, adjust=False).mean()
    signal_line = macd_line.ewm(span=signal, adjust=False).mean()

    macd_value = float(macd_line.iloc[-1])
    signal_value = float(signal_line.iloc[-1])
    return MACDResult(macd_value, signal_value, macd_value - signal_value)


def bollinger_bands(prices: Sequence[float], period: int = 20, std_dev: float = 2.0) -> BollingerBands:
    """SMA(period) +/- std_dev * population standard deviation(period)."""
    if len(prices) == 0:
        return BollingerBands(0.0, 0.0, 0.0)

    window = _series(prices).tail(period)
    middle = float(window.mean())
    deviation = float(window.std(ddof=0))
    return BollingerBands(middle + std_dev * deviation, middle, middle - std_dev * deviation)


def true_ranges(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float]) -> pd.Series:
    """True range for every candle after the first."""
    high = _series(highs)
    low = _series(lows)
    prev_close = _series(closes).shift(1)

    ranges = pd.concat(
        [high - low, (high - prev_close).abs(), (low - prev_close).abs()],
        axis=1,
    ).max(axis=1)
    return ranges.iloc[1:].reset_index(drop=True)


def atr(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], period: int = 14) -> float:
    """Average True Range: SMA of the last `period` true ranges, 0 with fewer than two candles."""
    if len(highs) < 2:
        return 0.0
    return float(true_ranges(highs, lows, closes).tail(period).mean())


def _wilder_smooth(values: pd.Series, period: int) -> float:
    smoothed = float(values.iloc[:period].mean())
    for value in values.iloc[period:]:
        smoothed = (smoothed * (period - 1) + value) / period
    return smoothed


def adx(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], period: int = 14) -> float:
    """
    Directional index from Wilder-smoothed directional movement.

    Computes |+DI - -DI| / (+DI + -DI) * 100. Returns 0 when there are fewer
    than `period + 1` candles or no directional movement at all.
    """
    if len(highs) < period + 1:
        return 0.0

    high = _series(highs)
    low = _series(lows)
    up_move = high.diff()
    down_move = -low.diff()

    plus_dm = up_move.where((up_move > down_move) & (up_move > 0), 0.0).iloc[1:]
    minus_dm = down_move.where((down_move > up_move) & (down_move > 0), 0.0).iloc[1:]
    tr = true_ranges(highs, lows, closes)

    smoothed_tr = _wilder_smooth(tr, period)
    if smoothed_tr <= 0:
        return 0.0

    di_plus = _wilder_smooth(plus_dm, period) / smoothed_tr * 100
    di_minus = _wilder_smooth(minus_dm, period) / smoothed_tr * 100
    di_sum = di_plus + di_minus
    if di_sum <= 0:
        return 0.0

    return abs(di_plus - di_minus) / di_sum * 100


def stochastic(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    k_period: int = 14,
    d_period: int = 3
) -> StochasticResult:
    """
    Stochastic oscillator.

    %K compares the close to the `k_period` high/low range (50 when the range
    is flat); %D is the SMA of the last `d_period` %K values.
    """
    if len(closes) < k_period:
        return StochasticResult(50.0, 50.0)

    close = _series(closes)
    highest = _series(highs).rolling(k_period).max()
    lowest = _series(lows).rolling(k_period).min()
    price_range = highest - lowest

    k_values = ((close - lowest) / price_range * 100).where(price_range > 0, 50.0)
    k_values = k_values.iloc[k_period - 1:]

    return StochasticResult(float(k_values.iloc[-1]), float(k_values.tail(d_period).mean()))


def volume_sma(volumes: Sequence[float], period: int = 20) -> float:
    return sma(volumes, period)


def is_hammer(candle: Candle) -> bool:
    body = abs(candle.close - candle.open)
    lower_shadow = min(candle.open, candle.close) - candle.low
    upper_shadow = candle.high - max(candle.open, candle.close)
    return lower_shadow > body * 2 and upper_shadow < body * 0.5


def is_doji(candle: Candle) -> bool:
    return abs(candle.close - candle.open) < (candle.high - candle.low) * 0.1


def is_bullish_engulfing(prev: Candle, current: Candle) -> bool:
    return (
        prev.close < prev.open
        and current.close > current.open
        and current.open < prev.close
        and current.close > prev.open
    )


def is_bearish_engulfing(prev: Candle, current: Candle) -> bool:
    return (
        prev.close > prev.open
        and current.close < current.open
        and current.open > prev.close
        and current.close < prev.open
    )


def detect_patterns(candles: Sequence[Candle]) -> List[str]:
    """
    Detect reversal patterns on the last candles.

    Returns:
        Human-readable pattern descriptions (empty with fewer than 3 candles)
    """
    if len(candles) < 3:
        return []

    prev, current = candles[-2], candles[-1]
    patterns = []

    if is_hammer(current):
        patterns.append("Hammer - possible bullish reversal")
    if is_doji(current):
        patterns.append("Doji - market indecision")
    if is_bullish_engulfing(prev, current):
        patterns.append("Bullish engulfing - strong buy pattern")
    if is_bearish_engulfing(prev, current):
        patterns.append("Bearish engulfing - strong sell pattern")

    return patterns


def compute_indicators(candles: Sequence[Candle]) -> Dict[str, float]:
    """
    Compute the standard indicator set for a candle window.

    Args:
        candles: Time-ordered candles

    Returns:
        Dictionary of indicator values keyed by name
    """
    if not candles:
        return {}

    closes = [c.close for c in candles]
    highs = [c.high for c in candles]
    lows = [c.low for c in candles]
    volumes = [c.volume for c in candles]

    macd_result = macd(closes)
    bands = bollinger_bands(closes)
    stoch = stochastic(highs, lows, closes)

    return {
        "price": closes[-1],
        "rsi_14": rsi(closes, 14),
        "macd": macd_result.macd,
        "macd_signal": macd_result.signal,
        "macd_histogram": macd_result.histogram,
        "bb_upper": bands.upper,
        "bb_middle": bands.middle,
        "bb_lower": bands.lower,
        "ema_20": ema(closes, 20),
        "ema_50": ema(closes, 50),
        "sma_20": sma(closes, 20),
        "atr_14": atr(highs, lows, closes, 14),
        "adx_14": adx(highs, lows, closes, 14),
        "stoch_k": stoch.k,
        "stoch_d": stoch.d,
        "volume_sma_20": volume_sma(volumes, 20),
    }
