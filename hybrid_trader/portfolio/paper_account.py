"""Simulated spot account for paper trading."""

import logging
from typing import Dict, Mapping, Tuple

from hybrid_trader.models import BUY, SELL, Order

logger = logging.getLogger(__name__)

QUOTE_ASSETS = ("USDT", "BTC", "ETH", "BNB")


def split_symbol(symbol: str) -> Tuple[str, str]:
    """
    Split a concatenated pair into base and quote assets.

    Args:
        symbol: Pair such as "BTCUSDT" or "ETHBTC"

    Returns:
        Tuple of (base, quote); unknown quotes default to USDT
    """
    for quote in QUOTE_ASSETS:
        if symbol.endswith(quote) and len(symbol) > len(quote):
            return symbol[:-len(quote)], quote
    return symbol[:3], "USDT"


class PaperAccount:
    """Per-asset balances with realized P&L and drawdown tracking."""

    def __init__(self, initial_balance: float = 10000.0, quote_asset: str = "USDT"):
        self.initial_balance = initial_balance
        self.quote_asset = quote_asset
        self.reset()

    def reset(self) -> None:
        self.balances: Dict[str, float] = {self.quote_asset: self.initial_balance}
        self.avg_prices: Dict[str, float] = {}
        self.realized_pnl = 0.0
        self.daily_pnl = 0.0
        self.total_trades = 0
        self.winning_trades = 0
        self.total_value = self.initial_balance
        self.peak_value = self.initial_balance
        self.max_drawdown = 0.0

    def balance(self, asset: str) -> float:
        return self.balances.get(asset, 0.0)

    def apply_fill(self, order: Order) -> float:
        """
        Move balances for an executed order.

        Args:
            order: Order with executed quantity, price and fees

        Returns:
            Realized profit of a SELL against the average buy price (0 for BUY)
        """
        if order.executed_quantity <= 0:
            return 0.0

        base, quote = split_symbol(order.symbol)
        quantity = order.executed_quantity
        price = order.executed_price
        realized = 0.0

        if order.side == BUY:
            held = self.balance(base)
            cost = quantity * price + order.fees
            self.balances[quote] = self.balance(quote) - cost
            self.balances[base] = held + quantity
            # Fees are folded into the cost basis
            self.avg_prices[base] = (held * self.avg_prices.get(base, 0.0) + cost) / (held + quantity)
        elif order.side == SELL:
            self.balances[base] = self.balance(base) - quantity
            self.balances[quote] = self.balance(quote) + quantity * price - order.fees
            avg_price = self.avg_prices.get(base, 0.0)
            if avg_price > 0:
                realized = (price - avg_price) * quantity - order.fees
                self.realized_pnl += realized
                self.daily_pnl += realized
                if realized > 0:
                    self.winning_trades += 1
            if self.balances[base] <= 1e-12:
                self.avg_prices.pop(base, None)

        self.total_trades += 1
        logger.debug(f"Balances after {order.side} {order.symbol}: {self.balances}")
        return realized

    def mark_to_market(self, prices: Mapping[str, float]) -> float:
        """
        Revalue holdings and update peak value and max drawdown.

        Args:
            prices: Last price per symbol, e.g. {"BTCUSDT": 50000.0}

        Returns:
            Total account value in the quote asset
        """
        total = self.balance(self.quote_asset)
        for asset, amount in self.balances.items():
            if asset == self.quote_asset or amount <= 0:
                continue
            price = prices.get(f"{asset}{self.quote_asset}")
            if price is None:
                price = self.avg_prices.get(asset, 0.0)
            total += amount * price

        self.total_value = total
        if total > self.peak_value:
            self.peak_value = total
        if self.peak_value > 0:
            drawdown = (self.peak_value - total) / self.peak_value * 100
            self.max_drawdown = max(self.max_drawdown, drawdown)
        return total

    def unrealized_pnl(self, prices: Mapping[str, float]) -> float:
        pnl = 0.0
        for asset, avg_price in self.avg_prices.items():
            price = prices.get(f"{asset}{self.quote_asset}")
            if price is not None:
                pnl += (price - avg_price) * self.balance(asset)
        return pnl

    @property
    def current_drawdown(self) -> float:
        if self.peak_value <= 0:
            return 0.0
        return max(0.0, (self.peak_value - self.total_value) / self.peak_value * 100)

    def snapshot(self) -> Dict[str, object]:
        return {
            "balances": dict(self.balances),
            "total_value": self.total_value,
            "realized_pnl": self.realized_pnl,
            "daily_pnl": self.daily_pnl,
            "total_trades": self.total_trades,
            "winning_trades": self.winning_trades,
            "peak_value": self.peak_value,
            "max_drawdown": self.max_drawdown,
        }
