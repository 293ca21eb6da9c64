"""Markdown reports for backtest results."""

from typing import List

from hybrid_trader.models import STRATEGY_NAMES, BacktestResult


def evaluate_results(result: BacktestResult) -> List[str]:
    evaluations = []

    if result.win_rate >= 60:
        evaluations.append("[OK] Excellent win rate")
    elif result.win_rate >= 50:
        evaluations.append("[WARN] Acceptable win rate")
    else:
        evaluations.append("[FAIL] Low win rate")

    if result.max_drawdown <= 10:
        evaluations.append("[OK] Acceptable risk")
    elif result.max_drawdown <= 20:
        evaluations.append("[WARN] Moderate risk")
    else:
        evaluations.append("[FAIL] High risk")

    if result.sharpe_ratio >= 1.5:
        evaluations.append("[OK] Excellent risk/reward")
    elif result.sharpe_ratio >= 1.0:
        evaluations.append("[WARN] Acceptable risk/reward")
    else:
        evaluations.append("[FAIL] Weak risk/reward")

    return evaluations


def generate_recommendations(result: BacktestResult) -> List[str]:
    recommendations = []

    if result.max_drawdown > 15:
        recommendations.append("Reduce position sizes to lower risk")
        recommendations.append("Tighten stop-loss conditions")
    if result.win_rate < 50:
        recommendations.append("Review trade entry criteria")
        recommendations.append("Improve signal filtering")
    if result.profit_factor < 1.2:
        recommendations.append("Improve the reward/risk ratio")
        recommendations.append("Widen profit targets or tighten stops")

    if not recommendations:
        recommendations.append("Strategy performs well")
        recommendations.append("Ready to continue with paper trading")

    return recommendations


def generate_report(result: BacktestResult) -> str:
    """
    Render a backtest result as a markdown report.

    Args:
        result: Aggregated backtest statistics

    Returns:
        Markdown text with summary, trade details, evaluation and recommendations
    """
    lines = [
        f"# Backtest Report - {result.strategy}",
        "",
        "## Summary",
        f"- **Total return:** {result.total_return:.2f}%",
        f"- **Win rate:** {result.win_rate:.1f}%",
        f"- **Max drawdown:** {result.max_drawdown:.2f}%",
        f"- **Sharpe ratio:** {result.sharpe_ratio:.2f}",
        f"- **Calmar ratio:** {result.calmar_ratio:.2f}",
        f"- **Profit factor:** {result.profit_factor:.2f}",
        "",
        "## Trades",
        f"- **Total trades:** {result.total_trades}",
        f"- **Winning trades:** {result.winning_trades}",
        f"- **Losing trades:** {result.losing_trades}",
        f"- **Average win:** ${result.avg_win:.2f}",
        f"- **Average loss:** ${result.avg_loss:.2f}",
        f"- **Max consecutive wins/losses:** {result.max_consecutive_wins}/{result.max_consecutive_losses}",
        f"- **Total fees:** ${result.total_fees:.2f}",
        f"- **Net profit:** ${result.net_profit:.2f}",
    ]

    if result.strategy_distribution:
        lines += ["", "## Strategy Usage"]
        for strategy_id, share in sorted(result.strategy_distribution.items(), key=lambda kv: -kv[1]):
            lines.append(f"- **{STRATEGY_NAMES.get(strategy_id, strategy_id)}:** {share:.1f}%")

    lines += ["", "## Evaluation"]
    lines += evaluate_results(result)
    lines += ["", "## Recommendations"]
    lines += [f"- {r}" for r in generate_recommendations(result)]

    return "\n".join(lines) + "\n"
