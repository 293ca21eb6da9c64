import pytest

from hybrid_trader.backtesting.metrics import compute_backtest_result, max_drawdown_pct, sharpe_ratio
from hybrid_trader.backtesting.report import generate_recommendations, generate_report
from hybrid_trader.models import BUY, TradeRecord


def _trade(i, profit, profit_percent, fees=1.0):
    return TradeRecord(
        id=f"trade_{i}",
        strategy="TREND_FOLLOWING",
        symbol="BTCUSDT",
        side=BUY,
        entry_time=i,
        exit_time=i + 1,
        entry_price=100.0,
        exit_price=100.0,
        quantity=1.0,
        profit=profit,
        profit_percent=profit_percent,
        fees=fees,
        slippage=0.0,
        hold_time=1,
        exit_reason="timeout",
        confidence=80.0,
    )


@pytest.fixture
def trades():
    profits = [(100.0, 1.0), (-50.0, -0.5), (200.0, 2.0), (-100.0, -1.0), (-100.0, -1.0)]
    return [_trade(i, p, pct) for i, (p, pct) in enumerate(profits)]


def test_aggregate_statistics(trades):
    result = compute_backtest_result(trades, 10000.0, "HYBRID", {"TREND_FOLLOWING": 100.0})

    assert result.total_trades == 5
    assert result.winning_trades == 2
    assert result.losing_trades == 3
    assert result.win_rate == pytest.approx(40.0)
    assert result.net_profit == pytest.approx(50.0)
    assert result.total_return == pytest.approx(0.5)
    assert result.profit_factor == pytest.approx(1.2)
    assert result.avg_win == pytest.approx(150.0)
    assert result.avg_loss == pytest.approx(250 / 3)
    assert result.max_consecutive_wins == 1
    assert result.max_consecutive_losses == 2
    assert result.total_fees == pytest.approx(5.0)
    assert result.max_drawdown == pytest.approx(200 / 10250 * 100)
    assert result.calmar_ratio == pytest.approx(0.5 / (200 / 10250 * 100))
    assert result.strategy_distribution == {"TREND_FOLLOWING": 100.0}


def test_sharpe_uses_population_stddev(trades):
    assert sharpe_ratio(trades) == pytest.approx(0.001 / 0.012)
    assert sharpe_ratio(trades[:1]) == 0.0
    assert sharpe_ratio([]) == 0.0


def test_drawdown_of_monotonic_gains_is_zero(trades):
    winners = [t for t in trades if t.profit > 0]
    assert max_drawdown_pct(winners, 10000.0) == 0.0


def test_empty_result():
    result = compute_backtest_result([], 10000.0)
    assert result.total_trades == 0
    assert result.win_rate == 0.0
    assert result.profit_factor == 0.0
    assert result.calmar_ratio == 0.0


def test_invalid_initial_balance():
    with pytest.raises(ValueError):
        compute_backtest_result([], 0.0)


def test_report_sections(trades):
    result = compute_backtest_result(trades, 10000.0, "HYBRID", {"TREND_FOLLOWING": 100.0})
    report = generate_report(result)

    assert report.startswith("# Backtest Report - HYBRID")
    assert "**Win rate:** 40.0%" in report
    assert "**Trend Following:** 100.0%" in report
    assert "[FAIL] Low win rate" in report
    assert "[OK] Acceptable risk" in report
    assert "- Review trade entry criteria" in report


def test_recommendations_for_healthy_result(trades):
    winners = [t for t in trades if t.profit > 0]
    result = compute_backtest_result(winners + trades[1:2], 10000.0)
    # 2 wins / 1 loss, profit factor 6, shallow drawdown
    assert generate_recommendations(result) == [
        "Strategy performs well",
        "Ready to continue with paper trading",
    ]
