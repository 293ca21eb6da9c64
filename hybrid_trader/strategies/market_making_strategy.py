"""Market making strategy: two-sided quotes skewed by inventory."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence

from hybrid_trader.models import MARKET_MAKING, QUOTE, REBALANCE, Candle, MarketSnapshot, Signal
from hybrid_trader.strategy import Strategy
from hybrid_trader.strategy_utils.position_sizing import calculate_notional_quantity

logger = logging.getLogger(__name__)


@dataclass
class MarketMakingConfig:
    target_spread: float = 0.1  # percent
    max_spread: float = 0.2  # percent
    inventory_limit: float = 15.0  # percent of balance
    skew_threshold: float = 0.3
    min_liquidity: float = 500_000.0  # quote value of top-of-book size
    rebalance_interval_ms: int = 30_000
    quote_allocation: float = 0.005  # fraction of balance per quote
    skew_price_shift: float = 0.001  # price shift per unit of skew
    account_balance: float = 1000.0


@dataclass
class InventoryPosition:
    symbol: str
    quantity: float = 0.0
    avg_price: float = 0.0
    value: float = 0.0
    skew: float = 0.0  # -1.0 (short limit) to 1.0 (long limit)


class MarketMakingStrategy(Strategy):
    """
    Market making for liquid, tight-spread books.

    Quotes a bid and an ask `target_spread`% apart around the last price.
    Inventory skew (position value over the inventory limit, clamped to
    [-1, 1]) leans the quotes so inventory reverts toward zero: a long book
    quotes more size on the ask and shifts both prices down. Past
    `skew_threshold` the strategy emits REBALANCE instead of quoting.
    """

    strategy_id = MARKET_MAKING

    def __init__(self, config: Optional[MarketMakingConfig] = None, clock: Optional[Callable[[], int]] = None):
        self.config = config or MarketMakingConfig()
        self.clock = clock or (lambda: int(time.time() * 1000))
        self.inventory: Dict[str, InventoryPosition] = {}
        self.last_rebalance: Optional[int] = None

    def reset(self) -> None:
        self.inventory = {}
        self.last_rebalance = None

    def analyze(
        self,
        candles: Sequence[Candle],
        snapshot: Optional[MarketSnapshot] = None,
        symbol: str = "BTCUSDT",
        now_ms: Optional[int] = None
    ) -> Signal:
        if not candles:
            return self.hold("No candle data")
        if snapshot is None:
            return self.hold("Order book required for market making", entry_price=candles[-1].close)

        cfg = self.config
        current_price = candles[-1].close
        spread = snapshot.spread_pct

        liquidity = (snapshot.bid_size + snapshot.ask_size) * current_price
        if liquidity < cfg.min_liquidity:
            return self.hold(
                f"Insufficient liquidity ({liquidity:,.0f} < {cfg.min_liquidity:,.0f})",
                entry_price=current_price,
                spread=spread,
            )
        if spread > cfg.max_spread:
            return self.hold(f"Spread too wide ({spread:.3f}%)", entry_price=current_price, spread=spread)

        position = self._get_position(symbol, current_price)
        skew = position.skew

        if abs(skew) > cfg.skew_threshold:
            self.last_rebalance = now_ms if now_ms is not None else self.clock()
            logger.info(f"Inventory skew {skew:+.2f} on {symbol} exceeds {cfg.skew_threshold}, rebalancing")
            return Signal(
                strategy=self.strategy_id,
                action=REBALANCE,
                confidence=90.0,
                entry_price=current_price,
                quantity=abs(position.quantity),
                reasons=(f"Rebalancing inventory (skew {skew * 100:.1f}%)",),
                metadata={"skew": skew, "spread": spread, "inventory": position.quantity},
            )

        half_spread = cfg.target_spread / 100 / 2
        shift = 1 - skew * cfg.skew_price_shift
        bid_price = current_price * (1 - half_spread) * shift
        ask_price = current_price * (1 + half_spread) * shift

        base_quantity = calculate_notional_quantity(cfg.account_balance, cfg.quote_allocation, current_price)
        bid_quantity = base_quantity * (1 - skew / 2)
        ask_quantity = base_quantity * (1 + skew / 2)

        confidence = 60.0
        reasons = [
            f"Quoting at {cfg.target_spread}% spread",
            f"Inventory skew {skew * 100:.1f}%",
        ]
        if abs(skew) > 0.1:
            confidence += 10
            reasons.append("Quotes leaned to reduce inventory")

        # Half of the round trips are assumed to complete
        expected_profit = (ask_price - bid_price) * min(bid_quantity, ask_quantity) * 0.5

        return Signal(
            strategy=self.strategy_id,
            action=QUOTE,
            confidence=confidence,
            entry_price=current_price,
            quantity=base_quantity,
            reasons=tuple(reasons),
            metadata={
                "bid_price": bid_price,
                "ask_price": ask_price,
                "bid_quantity": bid_quantity,
                "ask_quantity": ask_quantity,
                "expected_profit": expected_profit,
                "spread": spread,
                "skew": skew,
            },
        )

    def update_inventory(self, symbol: str, quantity: float, price: float) -> InventoryPosition:
        """
        Apply a fill to the inventory.

        Args:
            symbol: Trading pair symbol
            quantity: Signed base quantity (positive bought, negative sold)
            price: Fill price

        Returns:
            Updated inventory position
        """
        position = self._get_position(symbol, price)
        new_quantity = position.quantity + quantity

        if position.quantity == 0 or new_quantity == 0 or (position.quantity > 0) != (new_quantity > 0):
            position.avg_price = price if new_quantity != 0 else 0.0
        elif (quantity > 0) == (position.quantity > 0):
            position.avg_price = (position.quantity * position.avg_price + quantity * price) / new_quantity

        position.quantity = new_quantity
        self._mark(position, price)
        return position

    def rebalance_due(self, now_ms: Optional[int] = None) -> bool:
        """True when no rebalance happened within `rebalance_interval_ms`."""
        now = now_ms if now_ms is not None else self.clock()
        return self.last_rebalance is None or now - self.last_rebalance > self.config.rebalance_interval_ms

    def _get_position(self, symbol: str, price: float) -> InventoryPosition:
        position = self.inventory.get(symbol)
        if position is None:
            position = InventoryPosition(symbol=symbol, avg_price=price)
            self.inventory[symbol] = position
        self._mark(position, price)
        return position

    def _mark(self, position: InventoryPosition, price: float) -> None:
        position.value = position.quantity * price
        max_value = self.config.account_balance * self.config.inventory_limit / 100
        skew = position.value / max_value if max_value > 0 else 0.0
        position.skew = max(-1.0, min(skew, 1.0))
