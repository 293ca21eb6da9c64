"""Strategy interface shared by the five signal generators."""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from hybrid_trader.models import HOLD, Candle, MarketSnapshot, Signal

logger = logging.getLogger(__name__)


class Strategy(ABC):
    """A signal generator: maps candles (+ optional order book) to a Signal."""

    strategy_id: str = ""

    @abstractmethod
    def analyze(
        self,
        candles: Sequence[Candle],
        snapshot: Optional[MarketSnapshot] = None,
        symbol: str = "BTCUSDT",
        now_ms: Optional[int] = None
    ) -> Signal:
        """
        Produce a signal for the latest candle.

        Must not raise for well-typed input; insufficient or unusable data
        yields a HOLD signal with an explanatory reason.

        Args:
            candles: Time-ordered candles, newest last
            snapshot: Current order book, when the strategy needs one
            symbol: Trading pair symbol
            now_ms: Current time in Unix milliseconds (for rate-limited strategies)
        """

    def reset(self) -> None:
        """Clear cross-call state. Stateless strategies have nothing to clear."""

    def hold(self, reason: str, entry_price: float = 0.0, **metadata: float) -> Signal:
        return Signal(
            strategy=self.strategy_id,
            action=HOLD,
            confidence=0.0,
            entry_price=entry_price,
            reasons=(reason,),
            metadata=dict(metadata),
        )
