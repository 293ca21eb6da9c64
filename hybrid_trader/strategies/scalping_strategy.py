"""Scalping strategy for quick trades."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from hybrid_trader.indicators.technical_indicators import ema, rsi
from hybrid_trader.models import BUY, HOLD, SCALPING, SELL, Candle, MarketSnapshot, Signal
from hybrid_trader.strategy import Strategy
from hybrid_trader.strategy_utils.confidence_calculators import (
    cap_confidence,
    log_return_volatility,
    momentum,
)
from hybrid_trader.strategy_utils.position_sizing import calculate_pct_levels, calculate_risk_quantity

logger = logging.getLogger(__name__)


@dataclass
class ScalpingConfig:
    profit_target: float = 0.3  # percent
    stop_loss: float = 0.4  # percent
    max_spread: float = 0.05  # percent
    min_volume: float = 1_000_000.0  # quote notional of the latest candle
    rsi_period: int = 7
    ema_period: int = 9
    max_hold_time: int = 15  # candles
    min_signal_interval_ms: int = 5000
    default_spread: float = 0.02  # percent, used without an order book
    momentum_period: int = 3
    trend_period: int = 5
    volatility_window: int = 10
    min_volatility: float = 0.001
    max_volatility: float = 0.01
    risk_per_trade: float = 0.01
    account_balance: float = 10000.0


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class ScalpingStrategy(Strategy):
    """
    Scalping strategy for liquid, tight-spread markets.

    Rules:
    1. Filters: spread <= max_spread and candle notional >= min_volume
    2. BUY: price > EMA(9), RSI(7) < 70, 3-candle momentum > 0 (SELL mirrors)
    3. Confidence: +40 signal, +20 volatility in the scalping band,
       +15 five-candle trend agreement, +10 reward/risk >= 1
    4. Fixed percent stop/target; quantity risks 1% of balance
    5. Rate limited: at most one actionable signal per `min_signal_interval_ms`
    """

    strategy_id = SCALPING

    def __init__(self, config: Optional[ScalpingConfig] = None, clock: Optional[Callable[[], int]] = None):
        """
        Initialize scalping strategy.

        Args:
            config: Strategy parameters
            clock: Millisecond clock used when analyze() gets no timestamp
        """
        self.config = config or ScalpingConfig()
        self.clock = clock or _wall_clock_ms
        self.last_signal_time: Optional[int] = None

    def reset(self) -> None:
        self.last_signal_time = None

    def analyze(
        self,
        candles: Sequence[Candle],
        snapshot: Optional[MarketSnapshot] = None,
        symbol: str = "BTCUSDT",
        now_ms: Optional[int] = None
    ) -> Signal:
        cfg = self.config
        required = max(cfg.ema_period, cfg.rsi_period + 1, cfg.volatility_window + 1)
        if len(candles) < required:
            return self.hold(f"Insufficient data: {len(candles)}/{required} candles")

        now = now_ms if now_ms is not None else self.clock()
        if self.last_signal_time is not None and now - self.last_signal_time < cfg.min_signal_interval_ms:
            return self.hold("Cooling down between scalping signals")

        closes = [c.close for c in candles]
        current_price = closes[-1]
        current_notional = candles[-1].volume * current_price

        spread = snapshot.spread_pct if snapshot is not None else cfg.default_spread
        if spread > cfg.max_spread:
            return self.hold(f"Spread too wide ({spread:.3f}%)", entry_price=current_price, spread=spread)
        if current_notional < cfg.min_volume:
            return self.hold(
                f"Volume too low ({current_notional:,.0f} < {cfg.min_volume:,.0f})",
                entry_price=current_price,
                spread=spread,
            )

        rsi_value = rsi(closes, cfg.rsi_period)
        ema_value = ema(closes, cfg.ema_period)
        short_momentum = momentum(closes, cfg.momentum_period)
        volatility = log_return_volatility(closes, cfg.volatility_window)

        reasons = []
        action = HOLD
        confidence = 0.0

        if current_price > ema_value and rsi_value < 70 and short_momentum > 0:
            action = BUY
            confidence += 40
            reasons.append("Price above EMA with positive momentum")
            reasons.append(f"RSI in safe zone ({rsi_value:.1f})")
        elif current_price < ema_value and rsi_value > 30 and short_momentum < 0:
            action = SELL
            confidence += 40
            reasons.append("Price below EMA with negative momentum")
            reasons.append(f"RSI in safe zone ({rsi_value:.1f})")

        if action == HOLD:
            return self.hold("No scalping setup", entry_price=current_price, spread=spread, rsi=rsi_value)

        if cfg.min_volatility < volatility < cfg.max_volatility:
            confidence += 20
            reasons.append("Volatility suits scalping")

        trend = momentum(closes, cfg.trend_period - 1)
        if (action == BUY and trend > 0) or (action == SELL and trend < 0):
            confidence += 15
            reasons.append("Short-term trend supports the signal")

        risk_reward = cfg.profit_target / cfg.stop_loss if cfg.stop_loss > 0 else 0.0
        if risk_reward >= 1:
            confidence += 10
            reasons.append(f"Good reward/risk ({risk_reward:.2f})")

        stop_loss, take_profit = calculate_pct_levels(current_price, cfg.stop_loss, cfg.profit_target, action)
        quantity = calculate_risk_quantity(cfg.account_balance, cfg.risk_per_trade, current_price, stop_loss)
        # Round trip pays the spread twice
        expected_profit = (
            abs(take_profit - current_price) * quantity
            - spread / 100 * current_price * quantity * 2
        )

        self.last_signal_time = now

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
                "spread": spread,
                "expected_profit": expected_profit,
                "risk_reward": risk_reward,
                "volatility": volatility,
                "max_hold_time": float(cfg.max_hold_time),
            },
        )
