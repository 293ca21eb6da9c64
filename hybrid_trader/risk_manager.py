"""Risk management layer for the hybrid trading engine."""

import logging
from dataclasses import replace
from typing import Optional, Tuple

from hybrid_trader.config import RiskConfig
from hybrid_trader.models import HOLD, ILLIQUID, VOLATILE, MarketCondition, RiskState, Signal

logger = logging.getLogger(__name__)

LOW = "LOW"
MEDIUM = "MEDIUM"
HIGH = "HIGH"


class RiskManager:
    """Gates signals against drawdown and daily-loss limits.

    Owns one RiskState. `should_stop` is sticky: once a limit trips it stays
    set until `reset_daily_loss()` (if the drawdown is back within limits) or
    `reset_account()`.
    """

    def __init__(self, config: Optional[RiskConfig] = None):
        """
        Initialize risk manager with configuration.

        Args:
            config: Risk limits (defaults: 10% drawdown, 100 daily loss, 20% position)
        """
        self.config = config or RiskConfig()
        self.state = self._fresh_state()

    def _fresh_state(self) -> RiskState:
        return RiskState(
            max_drawdown=self.config.max_drawdown,
            max_daily_loss=self.config.max_daily_loss,
            max_position_size=self.config.max_position_size,
            risk_per_trade=self.config.risk_per_trade,
            peak_balance=self.config.initial_balance,
            account_balance=self.config.initial_balance,
        )

    def apply(self, signal: Signal, condition: MarketCondition) -> Signal:
        """
        Attenuate or veto a signal.

        Rules, in order:
        1. VOLATILE regime: quantity x volatile_size_factor
        2. Drawdown or daily loss at its limit: HOLD, confidence 0, should_stop

        Args:
            signal: Signal from the active strategy
            condition: Current market condition

        Returns:
            A new Signal; the input is never mutated
        """
        if condition.regime == VOLATILE and signal.quantity > 0:
            signal = replace(
                signal,
                quantity=signal.quantity * self.config.volatile_size_factor,
                reasons=signal.reasons + ("Position size reduced for high volatility",),
            )

        breached, reason = self.check_limits()
        if breached:
            if not self.state.should_stop:
                logger.warning(f"Risk limit exceeded: {reason}. Trading halted until reset")
            self.state.should_stop = True
            signal = replace(
                signal,
                action=HOLD,
                confidence=0.0,
                quantity=0.0,
                reasons=signal.reasons + (reason,),
            )

        return signal

    def check_limits(self) -> Tuple[bool, str]:
        """
        Check drawdown and daily loss against their limits.

        Returns:
            Tuple of (breached, reason)
        """
        state = self.state
        if state.current_drawdown >= state.max_drawdown:
            return True, f"Max drawdown reached ({state.current_drawdown:.2f}% >= {state.max_drawdown:.2f}%)"
        if state.daily_loss >= state.max_daily_loss:
            return True, f"Daily loss limit reached ({state.daily_loss:.2f} >= {state.max_daily_loss:.2f})"
        return False, ""

    def check_position_size(self, notional: float) -> Tuple[bool, str]:
        """
        Check whether adding `notional` keeps the position within its cap.

        Args:
            notional: Order value in quote currency

        Returns:
            Tuple of (approved, reason)
        """
        balance = self.state.account_balance
        if balance <= 0:
            return False, "No account balance"
        resulting = self.state.position_size + notional / balance * 100
        if resulting > self.state.max_position_size:
            return False, (
                f"Position size {resulting:.1f}% would exceed {self.state.max_position_size:.1f}%"
            )
        return True, ""

    def calculate_risk_level(self, signal: Signal, condition: MarketCondition) -> str:
        if signal.confidence < 60 or condition.regime == VOLATILE:
            return HIGH
        if signal.confidence < 75 or condition.regime == ILLIQUID:
            return MEDIUM
        return LOW

    def record_trade(self, profit: float, balance: Optional[float] = None) -> None:
        """
        Book a closed trade's P&L against the balance and daily loss.

        Args:
            profit: Net profit in quote currency (negative for a loss)
            balance: Account value after the trade, when known; otherwise the
                current balance plus `profit`
        """
        if profit < 0:
            self.state.daily_loss += -profit
        self.update_balance(balance if balance is not None else self.state.account_balance + profit)

    def update_balance(self, balance: float) -> None:
        """Set the account balance and recompute peak and drawdown."""
        state = self.state
        state.account_balance = balance
        if balance > state.peak_balance:
            state.peak_balance = balance
        if state.peak_balance > 0:
            state.current_drawdown = max(0.0, (state.peak_balance - balance) / state.peak_balance * 100)
        logger.debug(
            f"Balance {balance:.2f}, peak {state.peak_balance:.2f}, drawdown {state.current_drawdown:.2f}%"
        )

    def update_position_size(self, position_pct: float) -> None:
        self.state.position_size = max(0.0, position_pct)

    def reset_daily_loss(self) -> None:
        """Start a new trading day. Drawdown is not touched."""
        self.state.daily_loss = 0.0
        breached, reason = self.check_limits()
        self.state.should_stop = breached
        if breached:
            logger.warning(f"Daily reset did not clear the halt: {reason}")
        else:
            logger.info("Daily loss reset")

    def reset_account(self) -> None:
        """Clear all risk state back to the configured starting balance."""
        self.state = self._fresh_state()
        logger.info("Risk state reset")

    def get_state(self) -> RiskState:
        return replace(self.state)
