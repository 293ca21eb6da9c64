"""Configuration module for the hybrid trading engine."""

import os
from dataclasses import dataclass
from typing import List, Tuple
from dotenv import load_dotenv


@dataclass
class RiskConfig:
    """Limits enforced by the risk manager."""

    max_drawdown: float = 10.0  # percent of peak balance
    max_daily_loss: float = 100.0  # quote currency
    max_position_size: float = 20.0  # percent of balance
    risk_per_trade: float = 1.0  # percent of balance
    initial_balance: float = 10000.0
    volatile_size_factor: float = 0.7


@dataclass
class ExecutionConfig:
    """Execution simulator knobs."""

    slippage_rate: float = 0.0005
    fee_rate: float = 0.001
    max_slippage: float = 0.002
    partial_fill_probability: float = 0.15
    enable_slippage: bool = True
    enable_partial_fills: bool = True
    initial_balance: float = 10000.0
    quote_asset: str = "USDT"
    latency_range_ms: Tuple[float, float] = (10.0, 100.0)


@dataclass
class BacktestConfig:
    """Backtest harness knobs."""

    initial_balance: float = 10000.0
    fee_rate: float = 0.001
    slippage_rate: float = 0.0005
    warmup: int = 200
    lookahead: int = 100
    tail_reserve: int = 10
    confidence_threshold: float = 70.0
    risk_per_trade: float = 0.01
    daily_reset_candles: int = 1440
    walk_forward_window: int = 500
    walk_forward_step: int = 100
    seed: int = 42
    symbol: str = "BTCUSDT"


@dataclass
class Config:
    """Configuration for the engine loaded from environment variables."""

    run_mode: str
    exchange_id: str
    symbols: List[str]
    candle_interval: str
    candle_limit: int
    order_book_depth: int
    loop_interval_seconds: int

    initial_balance: float
    fee_rate: float
    slippage_rate: float
    max_slippage: float
    partial_fill_probability: float

    max_drawdown_pct: float
    max_daily_loss: float
    max_position_size_pct: float
    risk_per_trade_pct: float

    hysteresis_seconds: int
    confidence_threshold: float
    random_seed: int
    decision_log_path: str

    @classmethod
    def from_env(cls) -> "Config":
        """
        Load configuration from environment variables with validation.

        Returns:
            Config: Validated configuration object

        Raises:
            ValueError: If a field is malformed or out of range
        """
        # Load .env file if it exists
        load_dotenv()

        run_mode = os.getenv("RUN_MODE", "simulation").lower()
        exchange_id = os.getenv("EXCHANGE_ID", "binance").lower()
        symbols_str = os.getenv("SYMBOLS", "BTCUSDT")
        candle_interval = os.getenv("CANDLE_INTERVAL", "1m")
        decision_log_path = os.getenv("DECISION_LOG_PATH", "logs/decisions.jsonl")

        # Parse symbols (comma-separated)
        symbols = [s.strip().upper() for s in symbols_str.split(",") if s.strip()]
        if not symbols:
            raise ValueError("SYMBOLS must contain at least one valid symbol")

        candle_limit = _get_int("CANDLE_LIMIT", "500")
        order_book_depth = _get_int("ORDER_BOOK_DEPTH", "20")
        loop_interval_seconds = _get_int("LOOP_INTERVAL_SECONDS", "60")
        hysteresis_seconds = _get_int("HYSTERESIS_SECONDS", "300")
        random_seed = _get_int("RANDOM_SEED", "42")

        initial_balance = _get_float("INITIAL_BALANCE", "10000")
        fee_rate = _get_float("FEE_RATE", "0.001")
        slippage_rate = _get_float("SLIPPAGE_RATE", "0.0005")
        max_slippage = _get_float("MAX_SLIPPAGE", "0.002")
        partial_fill_probability = _get_float("PARTIAL_FILL_PROBABILITY", "0.15")
        max_drawdown_pct = _get_float("MAX_DRAWDOWN_PCT", "10")
        max_daily_loss = _get_float("MAX_DAILY_LOSS", "100")
        max_position_size_pct = _get_float("MAX_POSITION_SIZE_PCT", "20")
        risk_per_trade_pct = _get_float("RISK_PER_TRADE_PCT", "1")
        confidence_threshold = _get_float("CONFIDENCE_THRESHOLD", "70")

        config = cls(
            run_mode=run_mode,
            exchange_id=exchange_id,
            symbols=symbols,
            candle_interval=candle_interval,
            candle_limit=candle_limit,
            order_book_depth=order_book_depth,
            loop_interval_seconds=loop_interval_seconds,
            initial_balance=initial_balance,
            fee_rate=fee_rate,
            slippage_rate=slippage_rate,
            max_slippage=max_slippage,
            partial_fill_probability=partial_fill_probability,
            max_drawdown_pct=max_drawdown_pct,
            max_daily_loss=max_daily_loss,
            max_position_size_pct=max_position_size_pct,
            risk_per_trade_pct=risk_per_trade_pct,
            hysteresis_seconds=hysteresis_seconds,
            confidence_threshold=confidence_threshold,
            random_seed=random_seed,
            decision_log_path=decision_log_path,
        )
        config.validate()
        return config

    def validate(self) -> None:
        """
        Range-check every field.

        Raises:
            ValueError: If a value is outside its allowed range
        """
        if self.run_mode not in ("simulation", "backtest"):
            raise ValueError(f"RUN_MODE must be 'simulation' or 'backtest', got '{self.run_mode}'")

        if self.candle_limit < 50:
            raise ValueError("CANDLE_LIMIT must be at least 50 (regime classification window)")
        if self.order_book_depth <= 0:
            raise ValueError("ORDER_BOOK_DEPTH must be positive")
        if self.loop_interval_seconds <= 0:
            raise ValueError("LOOP_INTERVAL_SECONDS must be positive")
        if self.hysteresis_seconds < 0:
            raise ValueError("HYSTERESIS_SECONDS must be non-negative")

        if self.initial_balance <= 0:
            raise ValueError("INITIAL_BALANCE must be positive")
        for name, value in (
            ("FEE_RATE", self.fee_rate),
            ("SLIPPAGE_RATE", self.slippage_rate),
            ("MAX_SLIPPAGE", self.max_slippage),
            ("PARTIAL_FILL_PROBABILITY", self.partial_fill_probability),
        ):
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0.0 and 1.0")
        if self.slippage_rate > self.max_slippage:
            raise ValueError("SLIPPAGE_RATE must not exceed MAX_SLIPPAGE")

        if not 0.0 < self.max_drawdown_pct <= 100.0:
            raise ValueError("MAX_DRAWDOWN_PCT must be between 0 and 100")
        if self.max_daily_loss <= 0:
            raise ValueError("MAX_DAILY_LOSS must be positive")
        if not 0.0 < self.max_position_size_pct <= 100.0:
            raise ValueError("MAX_POSITION_SIZE_PCT must be between 0 and 100")
        if not 0.0 < self.risk_per_trade_pct <= 100.0:
            raise ValueError("RISK_PER_TRADE_PCT must be between 0 and 100")
        if not 0.0 <= self.confidence_threshold <= 100.0:
            raise ValueError("CONFIDENCE_THRESHOLD must be between 0 and 100")

    @property
    def hysteresis_ms(self) -> int:
        return self.hysteresis_seconds * 1000

    def risk_config(self) -> RiskConfig:
        return RiskConfig(
            max_drawdown=self.max_drawdown_pct,
            max_daily_loss=self.max_daily_loss,
            max_position_size=self.max_position_size_pct,
            risk_per_trade=self.risk_per_trade_pct,
            initial_balance=self.initial_balance,
        )

    def execution_config(self) -> ExecutionConfig:
        return ExecutionConfig(
            slippage_rate=self.slippage_rate,
            fee_rate=self.fee_rate,
            max_slippage=self.max_slippage,
            partial_fill_probability=self.partial_fill_probability,
            initial_balance=self.initial_balance,
        )

    def backtest_config(self) -> BacktestConfig:
        return BacktestConfig(
            initial_balance=self.initial_balance,
            fee_rate=self.fee_rate,
            slippage_rate=self.slippage_rate,
            confidence_threshold=self.confidence_threshold,
            risk_per_trade=self.risk_per_trade_pct / 100,
            seed=self.random_seed,
            symbol=self.symbols[0],
        )


def _get_int(name: str, default: str) -> int:
    try:
        return int(os.getenv(name, default))
    except ValueError:
        raise ValueError(f"{name} must be a valid integer")


def _get_float(name: str, default: str) -> float:
    try:
        return float(os.getenv(name, default))
    except ValueError:
        raise ValueError(f"{name} must be a valid float")
