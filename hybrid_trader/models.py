"""Data models for the hybrid trading engine."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


# Strategy identifiers
TREND_FOLLOWING = "TREND_FOLLOWING"
MEAN_REVERSION = "MEAN_REVERSION"
GRID_DCA = "GRID_DCA"
SCALPING = "SCALPING"
MARKET_MAKING = "MARKET_MAKING"

STRATEGY_IDS = (TREND_FOLLOWING, MEAN_REVERSION, GRID_DCA, SCALPING, MARKET_MAKING)

STRATEGY_NAMES = {
    TREND_FOLLOWING: "Trend Following",
    MEAN_REVERSION: "Mean Reversion",
    GRID_DCA: "Grid + DCA",
    SCALPING: "Scalping",
    MARKET_MAKING: "Market Making",
}

# Signal actions
BUY = "BUY"
SELL = "SELL"
HOLD = "HOLD"
CLOSE_ALL = "CLOSE_ALL"
QUOTE = "QUOTE"
REBALANCE = "REBALANCE"

DIRECTIONAL_ACTIONS = (BUY, SELL)

# Market regimes
TRENDING = "TRENDING"
RANGING = "RANGING"
VOLATILE = "VOLATILE"
ILLIQUID = "ILLIQUID"

# Order status
PENDING = "PENDING"
FILLED = "FILLED"
PARTIALLY_FILLED = "PARTIALLY_FILLED"
REJECTED = "REJECTED"
CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class Candle:
    """One OHLCV bar."""

    timestamp: int  # Unix milliseconds
    open: float
    high: float
    low: float
    close: float
    volume: float

    @classmethod
    def from_ohlcv(cls, row: List[float]) -> "Candle":
        """Build a candle from a ccxt style [ts, o, h, l, c, v] row."""
        return cls(
            timestamp=int(row[0]),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=float(row[5]),
        )


@dataclass(frozen=True)
class OrderBookLevel:
    """Single price level of an order book."""

    price: float
    quantity: float


@dataclass(frozen=True)
class MarketSnapshot:
    """Top of book plus depth, levels sorted best to worst."""

    bid: float
    ask: float
    bid_size: float
    ask_size: float
    bids: Tuple[OrderBookLevel, ...] = ()
    asks: Tuple[OrderBookLevel, ...] = ()
    symbol: str = "BTCUSDT"
    timestamp: int = 0

    @property
    def mid_price(self) -> float:
        return (self.bid + self.ask) / 2

    @property
    def spread_pct(self) -> float:
        """Spread as a percentage of the bid (0.05 means 0.05%)."""
        if self.bid <= 0:
            return 0.0
        return (self.ask - self.bid) / self.bid * 100


@dataclass(frozen=True)
class MarketCondition:
    """Regime descriptor derived from a candle window."""

    volatility: float
    trend_strength: float  # 0.0 to 1.0
    liquidity: float
    regime: str  # "TRENDING" | "RANGING" | "VOLATILE" | "ILLIQUID"
    confidence: float  # 0 to 100


@dataclass(frozen=True)
class Signal:
    """Output of a strategy generator, annotated by the hybrid manager."""

    strategy: str
    action: str  # "BUY" | "SELL" | "HOLD" | "CLOSE_ALL" | "QUOTE" | "REBALANCE"
    confidence: float  # 0 to 100
    entry_price: float = 0.0
    stop_loss: float = 0.0
    take_profit: float = 0.0
    quantity: float = 0.0
    reasons: Tuple[str, ...] = ()
    metadata: Dict[str, float] = field(default_factory=dict)
    market_condition: Optional[MarketCondition] = None
    risk_level: Optional[str] = None  # "LOW" | "MEDIUM" | "HIGH"

    @property
    def is_directional(self) -> bool:
        return self.action in DIRECTIONAL_ACTIONS


@dataclass
class RiskState:
    """Mutable risk bookkeeping owned by one hybrid manager."""

    max_drawdown: float = 10.0  # percent
    current_drawdown: float = 0.0  # percent
    daily_loss: float = 0.0  # quote currency
    max_daily_loss: float = 100.0  # quote currency
    position_size: float = 0.0  # percent of balance
    max_position_size: float = 20.0  # percent of balance
    risk_per_trade: float = 1.0  # percent of balance
    peak_balance: float = 10000.0
    account_balance: float = 10000.0
    should_stop: bool = False


@dataclass(frozen=True)
class OrderRequest:
    """Order submitted to the execution simulator."""

    symbol: str
    side: str  # "BUY" | "SELL"
    quantity: float
    order_type: str = "MARKET"  # "MARKET" | "LIMIT"
    price: Optional[float] = None
    stop_price: Optional[float] = None


@dataclass(frozen=True)
class Fill:
    """One execution against a single book level."""

    price: float
    quantity: float
    fee: float


@dataclass
class Order:
    """Order lifecycle record produced by the execution simulator."""

    id: str
    symbol: str
    side: str
    order_type: str
    quantity: float
    status: str = PENDING
    price: Optional[float] = None
    stop_price: Optional[float] = None
    executed_price: float = 0.0
    executed_quantity: float = 0.0
    fees: float = 0.0
    slippage: float = 0.0  # quantity-weighted average fraction
    latency_ms: float = 0.0
    reason: str = ""
    fills: List[Fill] = field(default_factory=list)

    @property
    def remaining_quantity(self) -> float:
        return max(self.quantity - self.executed_quantity, 0.0)

    @property
    def is_terminal(self) -> bool:
        return self.status != PENDING


@dataclass(frozen=True)
class TradeRecord:
    """Closed trade produced by the backtest harness."""

    id: str
    strategy: str
    symbol: str
    side: str
    entry_time: int
    exit_time: int
    entry_price: float
    exit_price: float
    quantity: float
    profit: float  # net of fees
    profit_percent: float
    fees: float
    slippage: float
    hold_time: int  # candles
    exit_reason: str  # "take_profit" | "stop_loss" | "timeout"
    confidence: float


@dataclass
class BacktestResult:
    """Aggregate statistics for a list of trades."""

    strategy: str
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    total_return: float = 0.0  # percent
    max_drawdown: float = 0.0  # percent
    sharpe_ratio: float = 0.0
    calmar_ratio: float = 0.0
    profit_factor: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    total_fees: float = 0.0
    net_profit: float = 0.0
    trades: List[TradeRecord] = field(default_factory=list)
    strategy_distribution: Dict[str, float] = field(default_factory=dict)


@dataclass
class DecisionLogEntry:
    """Decision record handed to the logging collaborator."""

    timestamp: int
    symbol: str
    strategy: str
    regime: str
    volatility: float
    trend_strength: float
    liquidity: float
    regime_confidence: float
    decision: str
    confidence: float
    reasons: List[str]
    processing_time_ms: float


@dataclass
class TradeLogEntry:
    """Simulated execution record handed to the logging collaborator."""

    timestamp: int
    symbol: str
    side: str
    price: float
    quantity: float
    fees: float
    order_id: str
    status: str
    reason: str
    strategy: str = "PAPER_TRADING"
    dry_run: bool = True


@dataclass
class RiskLogEntry:
    """Risk gate outcome handed to the logging collaborator."""

    timestamp: int
    current_drawdown: float
    daily_loss: float
    position_size: float
    risk_level: str
    approved: bool
    reason: str
