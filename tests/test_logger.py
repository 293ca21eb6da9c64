import json

from hybrid_trader.logger import DecisionLogger
from hybrid_trader.models import DecisionLogEntry, RiskLogEntry, TradeLogEntry


def _decision(timestamp=1):
    return DecisionLogEntry(
        timestamp=timestamp,
        symbol="BTCUSDT",
        strategy="TREND_FOLLOWING",
        regime="TRENDING",
        volatility=0.01,
        trend_strength=40.0,
        liquidity=1.2,
        regime_confidence=75.0,
        decision="BUY",
        confidence=80.0,
        reasons=["Strategy: Trend Following"],
        processing_time_ms=1.5,
    )


def test_writes_jsonl_lines(tmp_path):
    path = tmp_path / "nested" / "decisions.jsonl"
    decision_logger = DecisionLogger(str(path))

    decision_logger.log_decision(_decision())
    decision_logger.log_trade(TradeLogEntry(2, "BTCUSDT", "BUY", 100.0, 1.0, 0.1, "paper_1", "FILLED", ""))
    decision_logger.log_risk(RiskLogEntry(3, 0.0, 0.0, 0.0, "LOW", True, ""))

    lines = path.read_text().splitlines()
    assert len(lines) == 3
    records = [json.loads(line) for line in lines]
    assert [r["kind"] for r in records] == ["decision", "trade", "risk"]
    assert records[0]["reasons"] == ["Strategy: Trend Following"]
    assert records[1]["dry_run"] is True


def test_memory_buffer_is_capped_and_filterable():
    decision_logger = DecisionLogger(max_memory_entries=3)
    for i in range(5):
        decision_logger.log_decision(_decision(i))
    decision_logger.log_risk(RiskLogEntry(9, 0.0, 0.0, 0.0, "LOW", True, ""))

    entries = decision_logger.get_entries()
    assert len(entries) == 3
    assert [e["timestamp"] for e in decision_logger.get_entries("decision")] == [3, 4]
    assert len(decision_logger.get_entries("risk")) == 1

    decision_logger.clear()
    assert decision_logger.get_entries() == []


def test_memory_buffer_can_be_disabled():
    decision_logger = DecisionLogger(keep_in_memory=False)
    decision_logger.log_decision(_decision())
    assert decision_logger.get_entries() == []


def test_unwritable_path_never_raises(tmp_path):
    # Opening a directory for append fails; the entry stays in memory
    decision_logger = DecisionLogger(str(tmp_path))
    decision_logger.log_decision(_decision())
    assert len(decision_logger.get_entries()) == 1
