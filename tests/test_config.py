import pytest

from hybrid_trader.config import Config

ENV_KEYS = [
    "RUN_MODE", "EXCHANGE_ID", "SYMBOLS", "CANDLE_INTERVAL", "CANDLE_LIMIT", "ORDER_BOOK_DEPTH",
    "LOOP_INTERVAL_SECONDS", "INITIAL_BALANCE", "FEE_RATE", "SLIPPAGE_RATE", "MAX_SLIPPAGE",
    "PARTIAL_FILL_PROBABILITY", "MAX_DRAWDOWN_PCT", "MAX_DAILY_LOSS", "MAX_POSITION_SIZE_PCT",
    "RISK_PER_TRADE_PCT", "HYSTERESIS_SECONDS", "CONFIDENCE_THRESHOLD", "RANDOM_SEED",
    "DECISION_LOG_PATH",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    config = Config.from_env()

    assert config.run_mode == "simulation"
    assert config.exchange_id == "binance"
    assert config.symbols == ["BTCUSDT"]
    assert config.hysteresis_ms == 300_000
    assert config.random_seed == 42

    risk = config.risk_config()
    assert risk.max_drawdown == 10.0
    assert risk.max_daily_loss == 100.0
    assert risk.max_position_size == 20.0

    backtest = config.backtest_config()
    assert backtest.risk_per_trade == pytest.approx(0.01)
    assert backtest.confidence_threshold == 70.0
    assert backtest.symbol == "BTCUSDT"


def test_parses_overrides(monkeypatch):
    monkeypatch.setenv("RUN_MODE", "Backtest")
    monkeypatch.setenv("SYMBOLS", " ethusdt, BTCUSDT ,")
    monkeypatch.setenv("HYSTERESIS_SECONDS", "0")
    monkeypatch.setenv("PARTIAL_FILL_PROBABILITY", "0.5")

    config = Config.from_env()
    assert config.run_mode == "backtest"
    assert config.symbols == ["ETHUSDT", "BTCUSDT"]
    assert config.hysteresis_ms == 0
    assert config.execution_config().partial_fill_probability == 0.5
    assert config.backtest_config().symbol == "ETHUSDT"


@pytest.mark.parametrize("key,value", [
    ("RUN_MODE", "live"),
    ("SYMBOLS", " , "),
    ("CANDLE_LIMIT", "10"),
    ("CANDLE_LIMIT", "many"),
    ("INITIAL_BALANCE", "0"),
    ("FEE_RATE", "1.5"),
    ("SLIPPAGE_RATE", "0.01"),
    ("MAX_DRAWDOWN_PCT", "abc"),
    ("MAX_DAILY_LOSS", "-1"),
    ("CONFIDENCE_THRESHOLD", "120"),
    ("HYSTERESIS_SECONDS", "-5"),
])
def test_rejects_invalid_values(monkeypatch, key, value):
    monkeypatch.setenv(key, value)
    with pytest.raises(ValueError):
        Config.from_env()
