import random
import sys
from pathlib import Path

import pytest

# Make the repository root importable without installing the package
ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from hybrid_trader.models import Candle  # noqa: E402

START_MS = 1_700_000_000_000
STEP_MS = 60_000


def build_candles(closes, volumes=None, wick=0.001, start_ms=START_MS, seed=1):
    """Candles whose open is the previous close, with small wicks on both sides."""
    rng = random.Random(seed)
    candles = []
    prev = closes[0]
    for i, close in enumerate(closes):
        volume = volumes[i] if volumes is not None else 100 + rng.uniform(-10, 10)
        candles.append(Candle(
            timestamp=start_ms + i * STEP_MS,
            open=prev,
            high=max(prev, close) * (1 + wick),
            low=min(prev, close) * (1 - wick),
            close=close,
            volume=volume,
        ))
        prev = close
    return candles


def uptrend(n=250, start=100.0, growth=0.002, **kwargs):
    return build_candles([start * (1 + growth) ** i for i in range(n)], **kwargs)


def downtrend(n=250, start=300.0, **kwargs):
    # Accelerating decline keeps MACD momentum negative
    return build_candles([start - 0.001 * i * i for i in range(n)], **kwargs)


def ranging(n=120, low=100.0, high=101.0, start_ms=START_MS, seed=1):
    """Zigzag between `low` and `high`.

    Up candles poke above the previous high and down candles below the
    previous low by the same amount, so +DM and -DM alternate and ADX stays low.
    """
    rng = random.Random(seed)
    span = high - low
    candles = []
    for i in range(n):
        up = i % 2 == 1
        close = high if up else low
        candles.append(Candle(
            timestamp=start_ms + i * STEP_MS,
            open=low if up else (high if i > 0 else low),
            high=high + (0.2 if up else 0.05) * span,
            low=low - (0.05 if up else 0.2) * span,
            close=close,
            volume=100 + rng.uniform(-10, 10),
        ))
    return candles


def volatile(n=120, start=100.0, seed=7, **kwargs):
    rng = random.Random(seed)
    closes = [start]
    for _ in range(n - 1):
        closes.append(closes[-1] * (1 + rng.uniform(-0.06, 0.06)))
    return build_candles(closes, wick=0.01, **kwargs)


def flat(n=60, price=100.0):
    return build_candles([price] * n, volumes=[100.0] * n, wick=0.0)


def illiquid(n=120):
    candles = uptrend(n)
    last = candles[-1]
    return candles[:-1] + [Candle(last.timestamp, last.open, last.high, last.low, last.close, 10.0)]


class CandleFactory:
    build = staticmethod(build_candles)
    uptrend = staticmethod(uptrend)
    downtrend = staticmethod(downtrend)
    ranging = staticmethod(ranging)
    volatile = staticmethod(volatile)
    flat = staticmethod(flat)
    illiquid = staticmethod(illiquid)


@pytest.fixture
def candles():
    return CandleFactory
