"""Performance statistics for closed backtest trades."""

import math
from typing import Dict, Optional, Sequence

from hybrid_trader.models import BacktestResult, TradeRecord


def sharpe_ratio(trades: Sequence[TradeRecord]) -> float:
    """Mean over population stddev of per-trade fractional returns (not annualized)."""
    if not trades:
        return 0.0
    returns = [t.profit_percent / 100 for t in trades]
    mean = sum(returns) / len(returns)
    variance = sum((r - mean) ** 2 for r in returns) / len(returns)
    std = math.sqrt(variance)
    return mean / std if std > 0 else 0.0


def max_drawdown_pct(trades: Sequence[TradeRecord], initial_balance: float) -> float:
    """Largest peak-to-trough fall of the balance curve, in percent of the peak."""
    balance = initial_balance
    peak = initial_balance
    worst = 0.0
    for trade in trades:
        balance += trade.profit
        peak = max(peak, balance)
        if peak > 0:
            worst = max(worst, (peak - balance) / peak * 100)
    return worst


def _streaks(trades: Sequence[TradeRecord]):
    wins = losses = max_wins = max_losses = 0
    for trade in trades:
        if trade.profit > 0:
            wins += 1
            losses = 0
            max_wins = max(max_wins, wins)
        else:
            losses += 1
            wins = 0
            max_losses = max(max_losses, losses)
    return max_wins, max_losses


def compute_backtest_result(
    trades: Sequence[TradeRecord],
    initial_balance: float,
    strategy: str = "HYBRID",
    strategy_distribution: Optional[Dict[str, float]] = None
) -> BacktestResult:
    """
    Aggregate closed trades into a BacktestResult.

    A pure function of its inputs: trade profits are net of fees and are
    applied to the balance in order.

    Args:
        trades: Closed trades in exit order
        initial_balance: Starting balance in quote currency
        strategy: Label for the result
        strategy_distribution: Share of analysis steps per strategy, in percent

    Returns:
        BacktestResult
    """
    if initial_balance <= 0:
        raise ValueError(f"Initial balance must be positive, got {initial_balance}")

    winners = [t for t in trades if t.profit > 0]
    losers = [t for t in trades if t.profit < 0]

    net_profit = sum(t.profit for t in trades)
    gross_win = sum(t.profit for t in winners)
    gross_loss = -sum(t.profit for t in losers)

    total_return = net_profit / initial_balance * 100
    drawdown = max_drawdown_pct(trades, initial_balance)
    max_wins, max_losses = _streaks(trades)

    return BacktestResult(
        strategy=strategy,
        total_trades=len(trades),
        winning_trades=len(winners),
        losing_trades=len(losers),
        win_rate=len(winners) / len(trades) * 100 if trades else 0.0,
        total_return=total_return,
        max_drawdown=drawdown,
        sharpe_ratio=sharpe_ratio(trades),
        calmar_ratio=total_return / drawdown if drawdown > 0 else 0.0,
        # 0 when nothing was lost
        profit_factor=gross_win / gross_loss if gross_loss > 0 else 0.0,
        avg_win=gross_win / len(winners) if winners else 0.0,
        avg_loss=gross_loss / len(losers) if losers else 0.0,
        max_consecutive_wins=max_wins,
        max_consecutive_losses=max_losses,
        total_fees=sum(t.fees for t in trades),
        net_profit=net_profit,
        trades=list(trades),
        strategy_distribution=dict(strategy_distribution or {}),
    )
