"""Mean reversion strategy: RSI extremes and Bollinger band touches."""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from hybrid_trader.indicators.technical_indicators import atr, bollinger_bands, rsi
from hybrid_trader.models import BUY, MEAN_REVERSION, SELL, Candle, MarketSnapshot, Signal
from hybrid_trader.strategy import Strategy
from hybrid_trader.strategy_utils.confidence_calculators import cap_confidence, is_volume_spike, range_pct
from hybrid_trader.strategy_utils.position_sizing import calculate_risk_quantity

logger = logging.getLogger(__name__)


@dataclass
class MeanReversionConfig:
    rsi_period: int = 14
    rsi_oversold: float = 30.0
    rsi_overbought: float = 70.0
    rsi_exit_low: float = 50.0
    rsi_exit_high: float = 60.0
    bollinger_period: int = 20
    bollinger_std_dev: float = 2.0
    atr_period: int = 14
    stop_atr_multiplier: float = 1.5
    volume_window: int = 10
    volume_multiplier: float = 1.2
    range_window: int = 20
    max_range_pct: float = 5.0
    risk_per_trade: float = 0.01
    account_balance: float = 10000.0


class MeanReversionStrategy(Strategy):
    """
    Mean reversion strategy for range-bound markets.

    BUY when RSI is oversold or price touches the lower band, SELL on the
    overbought / upper band mirror. Target is the middle band, stop is
    1.5 ATR against the trade.
    """

    strategy_id = MEAN_REVERSION

    def __init__(self, config: Optional[MeanReversionConfig] = None):
        self.config = config or MeanReversionConfig()

    def analyze(
        self,
        candles: Sequence[Candle],
        snapshot: Optional[MarketSnapshot] = None,
        symbol: str = "BTCUSDT",
        now_ms: Optional[int] = None
    ) -> Signal:
        cfg = self.config
        required = max(cfg.rsi_period + 1, cfg.bollinger_period)
        if len(candles) < required:
            return self.hold(f"Insufficient data: {len(candles)}/{required} candles")

        closes = [c.close for c in candles]
        highs = [c.high for c in candles]
        lows = [c.low for c in candles]
        volumes = [c.volume for c in candles]
        current_price = closes[-1]

        rsi_value = rsi(closes, cfg.rsi_period)
        bands = bollinger_bands(closes, cfg.bollinger_period, cfg.bollinger_std_dev)

        buy_confidence = 0.0
        sell_confidence = 0.0
        buy_reasons = []
        sell_reasons = []

        if rsi_value <= cfg.rsi_oversold:
            buy_confidence += 40
            buy_reasons.append(f"RSI oversold ({rsi_value:.1f})")
        if current_price <= bands.lower:
            buy_confidence += 30
            buy_reasons.append("Price touched the lower Bollinger band")

        if rsi_value >= cfg.rsi_overbought:
            sell_confidence += 40
            sell_reasons.append(f"RSI overbought ({rsi_value:.1f})")
        if current_price >= bands.upper:
            sell_confidence += 30
            sell_reasons.append("Price touched the upper Bollinger band")

        if buy_confidence > sell_confidence:
            action, confidence, reasons = BUY, buy_confidence, buy_reasons
        elif sell_confidence > buy_confidence:
            action, confidence, reasons = SELL, sell_confidence, sell_reasons
        else:
            reason = "Conflicting extremes" if buy_confidence > 0 else f"No extreme (RSI {rsi_value:.1f})"
            return self.hold(reason, entry_price=current_price, rsi=rsi_value)

        if is_volume_spike(volumes, cfg.volume_window, cfg.volume_multiplier):
            confidence += 15
            reasons.append("Above-average volume supports the signal")

        if range_pct(highs, lows, cfg.range_window) < cfg.max_range_pct:
            confidence += 10
            reasons.append("Sideways market suits mean reversion")

        atr_value = atr(highs, lows, closes, cfg.atr_period)
        stop_distance = atr_value * cfg.stop_atr_multiplier
        stop_loss = current_price - stop_distance if action == BUY else current_price + stop_distance
        quantity = calculate_risk_quantity(cfg.account_balance, cfg.risk_per_trade, current_price, stop_loss)

        return Signal(
            strategy=self.strategy_id,
            action=action,
            confidence=cap_confidence(confidence),
            entry_price=current_price,
            stop_loss=stop_loss,
            take_profit=bands.middle,
            quantity=quantity,
            reasons=tuple(reasons),
            metadata={
                "rsi": rsi_value,
                "bb_upper": bands.upper,
                "bb_middle": bands.middle,
                "bb_lower": bands.lower,
            },
        )

    def should_exit(self, side: str, rsi_value: float) -> bool:
        """
        Check whether an open mean reversion position has reverted.

        Args:
            side: "BUY" for a long, "SELL" for a short
            rsi_value: Current RSI

        Returns:
            True once RSI is back past the exit level
        """
        if side == BUY:
            return rsi_value >= self.config.rsi_exit_low
        if side == SELL:
            return rsi_value <= self.config.rsi_exit_high
        return False
