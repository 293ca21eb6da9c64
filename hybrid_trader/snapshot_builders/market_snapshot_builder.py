"""Builders for creating market snapshot objects."""

import logging
from typing import Dict, List, Optional

from hybrid_trader.models import MarketSnapshot, OrderBookLevel

logger = logging.getLogger(__name__)


class MarketSnapshotBuilder:
    """Builds MarketSnapshot objects from exchange data or a bare price."""

    def __init__(self, depth: int = 2, level_quantity: float = 10.0, half_spread: float = 0.0005):
        """
        Initialize snapshot builder.

        Args:
            depth: Levels per side in synthetic books
            level_quantity: Base-asset size of the best level; level n holds level_quantity / n
            half_spread: Distance of the best bid/ask from the price, as a fraction
        """
        if depth <= 0:
            raise ValueError("Synthetic book depth must be positive")
        self.depth = depth
        self.level_quantity = level_quantity
        self.half_spread = half_spread

    def build_synthetic(self, price: float, symbol: str = "BTCUSDT", timestamp: int = 0) -> MarketSnapshot:
        """
        Build a symmetric book around `price`.

        Best bid is price x (1 - half_spread), best ask price x (1 + half_spread);
        deeper levels step out by the same distance with shrinking size.

        Args:
            price: Reference price
            symbol: Trading pair symbol
            timestamp: Unix milliseconds

        Returns:
            MarketSnapshot
        """
        if price <= 0:
            raise ValueError(f"Price must be positive, got {price}")

        bids = []
        asks = []
        for i in range(1, self.depth + 1):
            quantity = self.level_quantity / i
            bids.append(OrderBookLevel(price * (1 - self.half_spread * i), quantity))
            asks.append(OrderBookLevel(price * (1 + self.half_spread * i), quantity))

        return MarketSnapshot(
            bid=bids[0].price,
            ask=asks[0].price,
            bid_size=bids[0].quantity,
            ask_size=asks[0].quantity,
            bids=tuple(bids),
            asks=tuple(asks),
            symbol=symbol,
            timestamp=timestamp,
        )

    def build_from_order_book(self, symbol: str, order_book: Dict) -> Optional[MarketSnapshot]:
        """
        Convert a ccxt order book dict.

        Args:
            symbol: Trading pair symbol
            order_book: Dict with "bids" and "asks" as [price, amount, ...] rows

        Returns:
            MarketSnapshot, or None when a side is empty or the book is crossed
        """
        bids = self._levels(order_book.get("bids") or [])
        asks = self._levels(order_book.get("asks") or [])
        if not bids or not asks:
            logger.warning(f"Order book for {symbol} has an empty side")
            return None
        if bids[0].price >= asks[0].price:
            logger.warning(f"Crossed order book for {symbol}: bid {bids[0].price} >= ask {asks[0].price}")
            return None

        return MarketSnapshot(
            bid=bids[0].price,
            ask=asks[0].price,
            bid_size=bids[0].quantity,
            ask_size=asks[0].quantity,
            bids=tuple(bids),
            asks=tuple(asks),
            symbol=symbol,
            timestamp=int(order_book.get("timestamp") or 0),
        )

    @staticmethod
    def _levels(rows: List) -> List[OrderBookLevel]:
        return [OrderBookLevel(float(row[0]), float(row[1])) for row in rows if len(row) >= 2]
