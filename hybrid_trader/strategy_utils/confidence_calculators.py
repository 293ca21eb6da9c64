"""Confidence helpers shared by the strategy generators."""

import math
from typing import Sequence

from hybrid_trader.indicators.technical_indicators import sma, stddev

MAX_CONFIDENCE = 95.0


def cap_confidence(confidence: float, cap: float = MAX_CONFIDENCE) -> float:
    return max(0.0, min(confidence, cap))


def is_volume_spike(volumes: Sequence[float], window: int, multiplier: float) -> bool:
    """
    Check whether the latest volume exceeds `multiplier` times the average.

    The average is taken over the `window` volumes before the latest one.
    """
    if len(volumes) < 2:
        return False
    average = sma(volumes[:-1], window)
    return average > 0 and volumes[-1] > average * multiplier


def range_pct(highs: Sequence[float], lows: Sequence[float], window: int) -> float:
    """High-low range of the last `window` candles as a percent of the low."""
    if not highs or not lows:
        return 0.0
    recent_high = max(highs[-window:])
    recent_low = min(lows[-window:])
    if recent_low <= 0:
        return 0.0
    return (recent_high - recent_low) / recent_low * 100


def log_return_volatility(closes: Sequence[float], window: int = 10) -> float:
    """Population stddev of log returns over the last `window` returns."""
    recent = list(closes[-(window + 1):])
    returns = [
        math.log(curr / prev)
        for prev, curr in zip(recent, recent[1:])
        if prev > 0 and curr > 0
    ]
    if len(returns) < 2:
        return 0.0
    return stddev(returns)


def momentum(closes: Sequence[float], lookback: int) -> float:
    """Price change over `lookback` candles as a fraction."""
    if len(closes) <= lookback or closes[-lookback - 1] <= 0:
        return 0.0
    return (closes[-1] - closes[-lookback - 1]) / closes[-lookback - 1]
