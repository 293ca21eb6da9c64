"""Market data fetching logic for OHLCV and order book data."""

import logging
from typing import List, Optional

import ccxt
import pandas as pd

from hybrid_trader.models import Candle, MarketSnapshot
from hybrid_trader.portfolio.paper_account import QUOTE_ASSETS
from hybrid_trader.snapshot_builders.market_snapshot_builder import MarketSnapshotBuilder

logger = logging.getLogger(__name__)


def to_ccxt_symbol(symbol: str) -> str:
    """Convert "BTCUSDT" to the unified "BTC/USDT" form."""
    if "/" in symbol:
        return symbol
    for quote in QUOTE_ASSETS:
        if symbol.endswith(quote) and len(symbol) > len(quote):
            return f"{symbol[:-len(quote)]}/{quote}"
    return symbol


def create_exchange(exchange_id: str) -> ccxt.Exchange:
    """
    Instantiate a public (unauthenticated) ccxt exchange.

    Raises:
        ValueError: If ccxt does not know the exchange id
    """
    exchange_class = getattr(ccxt, exchange_id, None)
    if exchange_class is None:
        raise ValueError(f"Unknown exchange id: {exchange_id}")
    return exchange_class({"enableRateLimit": True})


class MarketDataFetcher:
    """Handles fetching of candles and order books.

    Exchange failures are logged and returned as empty results; the engine
    treats them as insufficient data.
    """

    def __init__(self, exchange, snapshot_builder: Optional[MarketSnapshotBuilder] = None):
        """
        Initialize market data fetcher.

        Args:
            exchange: ccxt exchange instance
            snapshot_builder: Converts raw order books into snapshots
        """
        self.exchange = exchange
        self.snapshot_builder = snapshot_builder or MarketSnapshotBuilder()

    def fetch_candles(self, symbol: str, interval: str = "1m", limit: int = 500) -> List[Candle]:
        """
        Fetch OHLCV candles from exchange.

        Args:
            symbol: Trading pair symbol (e.g., "BTCUSDT")
            interval: Timeframe string (e.g., "1m", "1h")
            limit: Number of candles to fetch

        Returns:
            Time-ordered candles, empty on failure
        """
        try:
            rows = self.exchange.fetch_ohlcv(to_ccxt_symbol(symbol), timeframe=interval, limit=limit)
        except ccxt.BaseError as e:
            logger.warning(f"Failed to fetch candles for {symbol}: {e}")
            return []

        candles = [Candle.from_ohlcv(row) for row in rows if len(row) >= 6 and row[4] is not None]
        candles.sort(key=lambda c: c.timestamp)
        return candles

    def fetch_order_book(self, symbol: str, depth: int = 20) -> Optional[MarketSnapshot]:
        """
        Fetch an order book from exchange.

        Args:
            symbol: Trading pair symbol
            depth: Levels per side

        Returns:
            MarketSnapshot, or None on failure
        """
        try:
            book = self.exchange.fetch_order_book(to_ccxt_symbol(symbol), limit=depth)
        except ccxt.BaseError as e:
            logger.warning(f"Failed to fetch order book for {symbol}: {e}")
            return None

        return self.snapshot_builder.build_from_order_book(symbol, book)


CANDLE_COLUMNS = ["timestamp", "open", "high", "low", "close", "volume"]


def load_candles_csv(path: str) -> List[Candle]:
    """
    Load historical candles from a CSV file.

    The file needs a header with timestamp (Unix ms), open, high, low,
    close and volume columns; extra columns are ignored.

    Raises:
        ValueError: If a required column is missing
    """
    df = pd.read_csv(path)
    df.columns = [str(c).strip().lower() for c in df.columns]
    missing = [c for c in CANDLE_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Candle file {path} is missing columns: {', '.join(missing)}")

    df = df[CANDLE_COLUMNS].dropna().sort_values("timestamp")
    candles = [Candle.from_ohlcv(row) for row in df.itertuples(index=False, name=None)]
    logger.info(f"Loaded {len(candles)} candles from {path}")
    return candles
