"""Grid + DCA strategy: ladder of buy levels below a reference price."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from hybrid_trader.models import BUY, CLOSE_ALL, GRID_DCA, HOLD, SELL, Candle, MarketSnapshot, Signal
from hybrid_trader.strategy import Strategy
from hybrid_trader.strategy_utils.position_sizing import calculate_exposure_pct, calculate_notional_quantity

logger = logging.getLogger(__name__)


@dataclass
class GridDCAConfig:
    grid_range: float = 10.0  # percent below the reference price covered by levels
    grid_step: float = 1.0  # percent between levels
    max_exposure: float = 20.0  # percent of balance
    dca_multiplier: float = 1.5
    stop_loss_percent: float = 15.0  # drop from reference that closes everything
    base_allocation: float = 0.01  # fraction of balance per base order
    account_balance: float = 10000.0
    auto_initialize: bool = True


@dataclass
class GridLevel:
    index: int  # 1 = closest to the reference price
    price: float
    filled: bool = False
    filled_at: Optional[int] = None
    filled_quantity: float = 0.0


@dataclass
class GridState:
    """Cross-call state owned by the grid strategy."""

    reference_price: float = 0.0
    levels: List[GridLevel] = field(default_factory=list)
    exposure: float = 0.0  # percent of balance
    initialized: bool = False


class GridDCAStrategy(Strategy):
    """
    Grid trading with dollar-cost averaging.

    Keeps a reference price and a descending ladder of buy levels spaced by
    `grid_step`% down to `grid_range`% below it. Each level fills at most
    once; level n buys base x dca_multiplier^(n-1). Cumulative exposure never
    exceeds `max_exposure`% of balance, and a drop of `stop_loss_percent`
    from the reference emits CLOSE_ALL.

    This is the only generator that carries state between calls; call
    `reset()` between independent runs.
    """

    strategy_id = GRID_DCA

    def __init__(self, config: Optional[GridDCAConfig] = None):
        self.config = config or GridDCAConfig()
        self.state = GridState()

    def initialize(self, reference_price: float) -> None:
        """
        Anchor the grid at `reference_price` and build fresh levels.

        Args:
            reference_price: Price the ladder is measured from
        """
        if reference_price <= 0:
            raise ValueError(f"Grid reference price must be positive, got {reference_price}")

        self.state = GridState(
            reference_price=reference_price,
            levels=self._create_levels(reference_price),
            exposure=0.0,
            initialized=True,
        )
        logger.info(
            f"Grid initialized at {reference_price:.2f} with {len(self.state.levels)} levels "
            f"({self.config.grid_step}% step, {self.config.grid_range}% range)"
        )

    def reset(self) -> None:
        self.state = GridState()

    def analyze(
        self,
        candles: Sequence[Candle],
        snapshot: Optional[MarketSnapshot] = None,
        symbol: str = "BTCUSDT",
        now_ms: Optional[int] = None
    ) -> Signal:
        if not candles:
            return self.hold("No candle data")

        cfg = self.config
        current_price = candles[-1].close
        if current_price <= 0:
            return self.hold(f"Invalid price {current_price}")

        if not self.state.initialized:
            if not cfg.auto_initialize:
                return self.hold("Grid not initialized", entry_price=current_price)
            self.initialize(current_price)

        state = self.state
        reference = state.reference_price

        drop_pct = (reference - current_price) * 100 / reference
        if drop_pct >= cfg.stop_loss_percent:
            logger.warning(f"Grid stop loss hit: price {current_price:.2f} is {drop_pct:.1f}% below {reference:.2f}")
            return Signal(
                strategy=self.strategy_id,
                action=CLOSE_ALL,
                confidence=100.0,
                entry_price=current_price,
                reasons=(f"Grid stop loss exceeded ({drop_pct:.1f}% below reference)",),
                metadata=self._metadata(),
            )

        if state.exposure >= cfg.max_exposure:
            return self.hold(
                f"Maximum exposure reached ({state.exposure:.1f}%)",
                entry_price=current_price,
                **self._metadata()
            )

        reasons = []
        level = self._find_target_level(current_price)
        if level is not None:
            quantity = self._level_quantity(level)
            order_exposure = calculate_exposure_pct(quantity, current_price, cfg.account_balance)

            if state.exposure + order_exposure <= cfg.max_exposure:
                state.exposure += order_exposure
                level.filled = True
                level.filled_at = candles[-1].timestamp
                level.filled_quantity = quantity

                stop_loss = reference * (1 - cfg.stop_loss_percent / 100)
                take_profit = current_price * (1 + 2 * cfg.grid_step / 100)
                return Signal(
                    strategy=self.strategy_id,
                    action=BUY,
                    confidence=80.0,
                    entry_price=current_price,
                    stop_loss=stop_loss,
                    take_profit=take_profit,
                    quantity=quantity,
                    reasons=(
                        f"Grid level {level.index} filled at {level.price:.2f}",
                        f"DCA level {level.index}",
                        f"Exposure now {state.exposure:.1f}%",
                    ),
                    metadata=self._metadata(),
                )
            reasons.append(f"Level {level.index} would exceed maximum exposure")

        profit_pct = (current_price - reference) * 100 / reference
        if profit_pct >= cfg.grid_range / 2 and state.exposure > 0:
            return Signal(
                strategy=self.strategy_id,
                action=SELL,
                confidence=70.0,
                entry_price=current_price,
                stop_loss=current_price * (1 + cfg.grid_step / 100),
                take_profit=reference,
                quantity=self._filled_quantity(),
                reasons=tuple(reasons) + (f"Taking grid profit at +{profit_pct:.1f}%",),
                metadata=self._metadata(),
            )

        if not reasons:
            reasons.append("No grid level reached")
        return Signal(
            strategy=self.strategy_id,
            action=HOLD,
            confidence=0.0,
            entry_price=current_price,
            reasons=tuple(reasons),
            metadata=self._metadata(),
        )

    def get_status(self) -> Dict[str, float]:
        """
        Summarize grid state.

        Returns:
            Dictionary with reference price, exposure and level counts
        """
        return {
            "reference_price": self.state.reference_price,
            "current_exposure": self.state.exposure,
            "active_levels": len(self.state.levels),
            "filled_levels": sum(1 for level in self.state.levels if level.filled),
        }

    def _create_levels(self, reference_price: float) -> List[GridLevel]:
        count = int(round(self.config.grid_range / self.config.grid_step))
        levels = [
            GridLevel(index=i, price=reference_price * (1 - self.config.grid_step * i / 100))
            for i in range(1, count + 1)
        ]
        # Highest price first
        return sorted(levels, key=lambda level: level.price, reverse=True)

    def _find_target_level(self, current_price: float) -> Optional[GridLevel]:
        for level in self.state.levels:
            if not level.filled and current_price <= level.price:
                return level
        return None

    def _base_quantity(self) -> float:
        return calculate_notional_quantity(
            self.config.account_balance, self.config.base_allocation, self.state.reference_price
        )

    def _level_quantity(self, level: GridLevel) -> float:
        return self._base_quantity() * self.config.dca_multiplier ** (level.index - 1)

    def _filled_quantity(self) -> float:
        return sum(level.filled_quantity for level in self.state.levels if level.filled)

    def _metadata(self) -> Dict[str, float]:
        status = self.get_status()
        return {
            "reference_price": status["reference_price"],
            "exposure": status["current_exposure"],
            "filled_levels": float(status["filled_levels"]),
        }
