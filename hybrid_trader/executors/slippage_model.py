"""Slippage models."""

from abc import ABC, abstractmethod

from hybrid_trader.models import BUY, MarketSnapshot


class SlippageModel(ABC):
    @abstractmethod
    def estimate(self, *, quantity: float, snapshot: MarketSnapshot) -> float:
        """Slippage as a fraction of price for a fill of `quantity`."""
        raise NotImplementedError

    def apply(self, *, price: float, side: str, slippage: float) -> float:
        """Move `price` against the taker: buys pay more, sells receive less."""
        if slippage == 0.0:
            return float(price)
        return price * (1 + slippage) if side == BUY else price * (1 - slippage)


class FixedRateSlippageModel(SlippageModel):
    """Constant fractional slippage (0.0005 = 5 bp)."""

    def __init__(self, rate: float = 0.0):
        self.rate = float(rate)

    def estimate(self, *, quantity: float, snapshot: MarketSnapshot) -> float:
        return self.rate


class DynamicSlippageModel(SlippageModel):
    """
    Base rate plus size, spread and stress impact, capped at `max_slippage`.

    slippage = rate
             + min(quantity x mid / 1e6, size_impact_cap)
             + max(0, (spread% - 0.05) x 0.1)
             + 0.0005 when spread% > 0.1
    """

    def __init__(
        self,
        rate: float = 0.0005,
        max_slippage: float = 0.002,
        size_impact_cap: float = 0.001,
        size_impact_notional: float = 1_000_000.0
    ):
        self.rate = float(rate)
        self.max_slippage = float(max_slippage)
        self.size_impact_cap = float(size_impact_cap)
        self.size_impact_notional = float(size_impact_notional)

    def estimate(self, *, quantity: float, snapshot: MarketSnapshot) -> float:
        spread = snapshot.spread_pct
        size_impact = min(quantity * snapshot.mid_price / self.size_impact_notional, self.size_impact_cap)
        spread_impact = max(0.0, (spread - 0.05) * 0.1)
        stress_impact = 0.0005 if spread > 0.1 else 0.0
        return min(self.rate + size_impact + spread_impact + stress_impact, self.max_slippage)
