"""Trend following strategy: EMA crossover confirmed by MACD and ADX."""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from hybrid_trader.indicators.technical_indicators import adx, atr, ema, macd
from hybrid_trader.models import BUY, HOLD, SELL, TREND_FOLLOWING, Candle, MarketSnapshot, Signal
from hybrid_trader.strategy import Strategy
from hybrid_trader.strategy_utils.confidence_calculators import cap_confidence, is_volume_spike
from hybrid_trader.strategy_utils.position_sizing import calculate_atr_levels, calculate_risk_quantity

logger = logging.getLogger(__name__)


@dataclass
class TrendFollowingConfig:
    ema_short: int = 50
    ema_long: int = 200
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    atr_period: int = 14
    atr_multiplier: float = 2.0
    adx_period: int = 14
    adx_threshold: float = 25.0
    breakout_window: int = 20
    volume_window: int = 20
    volume_multiplier: float = 1.5
    risk_per_trade: float = 0.01
    account_balance: float = 10000.0


class TrendFollowingStrategy(Strategy):
    """
    Trend following strategy for established directional markets.

    Rules:
    1. BUY when EMA(short) > EMA(long), MACD histogram > 0 and ADX > threshold
    2. SELL on the mirror image
    3. Confidence: +30 EMA trend, +20 MACD momentum, +20 breakout of the prior
       20-candle high/low, +15 volume above 1.5x average, capped at 95
    4. Stop: entry -/+ ATR x multiplier, target: entry +/- 2 x ATR x multiplier
    """

    strategy_id = TREND_FOLLOWING

    def __init__(self, config: Optional[TrendFollowingConfig] = None):
        """
        Initialize trend following strategy.

        Args:
            config: Strategy parameters (defaults to 50/200 EMA, 12/26/9 MACD, 2x ATR)
        """
        self.config = config or TrendFollowingConfig()

    def analyze(
        self,
        candles: Sequence[Candle],
        snapshot: Optional[MarketSnapshot] = None,
        symbol: str = "BTCUSDT",
        now_ms: Optional[int] = None
    ) -> Signal:
        cfg = self.config
        if len(candles) < cfg.ema_long:
            return self.hold(f"Insufficient data: {len(candles)}/{cfg.ema_long} candles")

        closes = [c.close for c in candles]
        highs = [c.high for c in candles]
        lows = [c.low for c in candles]
        volumes = [c.volume for c in candles]
        current_price = closes[-1]

        ema_short = ema(closes, cfg.ema_short)
        ema_long = ema(closes, cfg.ema_long)
        macd_result = macd(closes, cfg.macd_fast, cfg.macd_slow, cfg.macd_signal)
        atr_value = atr(highs, lows, closes, cfg.atr_period)
        adx_value = adx(highs, lows, closes, cfg.adx_period)

        trend_strong = adx_value > cfg.adx_threshold
        reasons = []
        action = HOLD
        confidence = 0.0

        if ema_short > ema_long and macd_result.histogram > 0 and trend_strong:
            action = BUY
            confidence += 50  # EMA trend 30 + MACD momentum 20
            reasons.append(f"EMA {cfg.ema_short} above EMA {cfg.ema_long}")
            reasons.append("MACD shows bullish momentum")
            reasons.append(f"ADX confirms trend strength ({adx_value:.1f})")
        elif ema_short < ema_long and macd_result.histogram < 0 and trend_strong:
            action = SELL
            confidence += 50  # EMA trend 30 + MACD momentum 20
            reasons.append(f"EMA {cfg.ema_short} below EMA {cfg.ema_long}")
            reasons.append("MACD shows bearish momentum")
            reasons.append(f"ADX confirms trend strength ({adx_value:.1f})")

        if action == HOLD:
            if not trend_strong:
                reason = f"Trend too weak (ADX {adx_value:.1f} <= {cfg.adx_threshold:.0f})"
            else:
                reason = "EMA and MACD disagree on direction"
            return self.hold(reason, entry_price=current_price, adx=adx_value)

        # Breakout of the prior window (current candle excluded)
        prior = candles[-cfg.breakout_window - 1:-1]
        if prior:
            resistance = max(c.high for c in prior)
            support = min(c.low for c in prior)
            if action == BUY and current_price > resistance:
                confidence += 20
                reasons.append(f"Breakout above resistance at {resistance:.2f}")
            elif action == SELL and current_price < support:
                confidence += 20
                reasons.append(f"Breakdown below support at {support:.2f}")

        if is_volume_spike(volumes, cfg.volume_window, cfg.volume_multiplier):
            confidence += 15
            reasons.append("High volume confirms the move")

        stop_loss, take_profit = calculate_atr_levels(current_price, atr_value, cfg.atr_multiplier, action)
        quantity = calculate_risk_quantity(cfg.account_balance, cfg.risk_per_trade, current_price, stop_loss)

        return Signal(
            strategy=self.strategy_id,
            action=action,
            confidence=cap_confidence(confidence),
            entry_price=current_price,
            stop_loss=stop_loss,
            take_profit=take_profit,
            quantity=quantity,
            reasons=tuple(reasons),
            metadata={
                "ema_short": ema_short,
                "ema_long": ema_long,
                "macd_histogram": macd_result.histogram,
                "adx": adx_value,
                "atr": atr_value,
            },
        )
