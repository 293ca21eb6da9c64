"""Market regime classifier for strategy selection."""

import logging
from typing import Sequence

from hybrid_trader.indicators.technical_indicators import adx, atr, sma
from hybrid_trader.models import (
    ILLIQUID,
    RANGING,
    TRENDING,
    VOLATILE,
    Candle,
    MarketCondition,
)

logger = logging.getLogger(__name__)


class RegimeClassifier:
    """Classifies a candle window into a market regime.

    Classification is a pure function of the window: the classifier keeps no
    state between calls.
    """

    MIN_CANDLES = 50

    def __init__(
        self,
        atr_period: int = 14,
        adx_period: int = 14,
        average_window: int = 20,
        illiquid_threshold: float = 0.5,
        trending_adx: float = 25.0,
        trending_max_volatility: float = 0.03,
        ranging_adx: float = 20.0,
        ranging_max_volatility: float = 0.02,
        volatile_min_volatility: float = 0.03
    ):
        """
        Initialize regime classifier.

        Args:
            atr_period: ATR period used for volatility
            adx_period: ADX period used for trend strength
            average_window: Window for average close and average volume
            illiquid_threshold: Relative volume below which the market is ILLIQUID
            trending_adx: ADX above which (with low volatility) the market is TRENDING
            trending_max_volatility: Volatility ceiling for TRENDING
            ranging_adx: ADX below which (with low volatility) the market is RANGING
            ranging_max_volatility: Volatility ceiling for RANGING
            volatile_min_volatility: Volatility above which the market is VOLATILE
        """
        self.atr_period = atr_period
        self.adx_period = adx_period
        self.average_window = average_window
        self.illiquid_threshold = illiquid_threshold
        self.trending_adx = trending_adx
        self.trending_max_volatility = trending_max_volatility
        self.ranging_adx = ranging_adx
        self.ranging_max_volatility = ranging_max_volatility
        self.volatile_min_volatility = volatile_min_volatility

    def classify(self, candles: Sequence[Candle]) -> MarketCondition:
        """
        Classify market regime from a candle window.

        Decision table, first match wins:
        - liquidity < 0.5: ILLIQUID (80)
        - ADX > 25 and volatility < 0.03: TRENDING (75)
        - ADX < 20 and volatility < 0.02: RANGING (70)
        - volatility > 0.03: VOLATILE (65)
        - otherwise: RANGING (50)

        Args:
            candles: Time-ordered candles (at least 50)

        Returns:
            MarketCondition; ILLIQUID with confidence 0 on short windows
        """
        if len(candles) < self.MIN_CANDLES:
            return MarketCondition(
                volatility=0.0,
                trend_strength=0.0,
                liquidity=0.0,
                regime=ILLIQUID,
                confidence=0.0,
            )

        closes = [c.close for c in candles]
        highs = [c.high for c in candles]
        lows = [c.low for c in candles]
        volumes = [c.volume for c in candles]

        # Volatility: ATR normalized by recent average price
        avg_price = sma(closes, self.average_window)
        atr_value = atr(highs, lows, closes, self.atr_period)
        volatility = atr_value / avg_price if avg_price > 0 else 0.0

        adx_value = adx(highs, lows, closes, self.adx_period)
        trend_strength = min(max(adx_value / 100, 0.0), 1.0)

        # Liquidity: current volume relative to recent average
        avg_volume = sma(volumes, self.average_window)
        liquidity = volumes[-1] / avg_volume if avg_volume > 0 else 0.0

        if liquidity < self.illiquid_threshold:
            regime, confidence = ILLIQUID, 80.0
        elif adx_value > self.trending_adx and volatility < self.trending_max_volatility:
            regime, confidence = TRENDING, 75.0
        elif adx_value < self.ranging_adx and volatility < self.ranging_max_volatility:
            regime, confidence = RANGING, 70.0
        elif volatility > self.volatile_min_volatility:
            regime, confidence = VOLATILE, 65.0
        else:
            regime, confidence = RANGING, 50.0

        logger.debug(
            f"Regime {regime} (conf {confidence:.0f}): vol={volatility:.4f}, "
            f"adx={adx_value:.1f}, liquidity={liquidity:.2f}"
        )

        return MarketCondition(
            volatility=volatility,
            trend_strength=trend_strength,
            liquidity=liquidity,
            regime=regime,
            confidence=confidence,
        )
