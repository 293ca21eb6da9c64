"""Position sizing calculations for trading strategies."""

import logging

logger = logging.getLogger(__name__)


def calculate_risk_quantity(balance: float, risk_fraction: float, entry_price: float, stop_loss: float) -> float:
    """
    Size a position so that hitting the stop loses `risk_fraction` of balance.

    Args:
        balance: Account balance in quote currency
        risk_fraction: Fraction of balance at risk (0.01 = 1%)
        entry_price: Planned entry price
        stop_loss: Stop loss price

    Returns:
        Base-asset quantity, 0 when the stop distance is zero
    """
    stop_distance = abs(entry_price - stop_loss)
    if stop_distance <= 0 or balance <= 0:
        return 0.0
    return balance * risk_fraction / stop_distance


def calculate_notional_quantity(balance: float, allocation_fraction: float, price: float) -> float:
    """Quantity worth `allocation_fraction` of balance at `price`."""
    if price <= 0 or balance <= 0:
        return 0.0
    return balance * allocation_fraction / price


def calculate_exposure_pct(quantity: float, price: float, balance: float) -> float:
    """Position value as a percentage of balance."""
    if balance <= 0:
        return 0.0
    return quantity * price / balance * 100


def calculate_atr_levels(entry_price: float, atr_value: float, multiplier: float, side: str):
    """
    Stop and target placed at ATR multiples around the entry.

    Stop is `multiplier` ATRs against the trade, target twice that in favour.

    Returns:
        Tuple of (stop_loss, take_profit)
    """
    distance = atr_value * multiplier
    if side == "BUY":
        return entry_price - distance, entry_price + distance * 2
    return entry_price + distance, entry_price - distance * 2


def calculate_pct_levels(entry_price: float, stop_pct: float, target_pct: float, side: str):
    """
    Stop and target at fixed percentages from the entry.

    Args:
        stop_pct: Stop distance in percent (0.4 means 0.4%)
        target_pct: Target distance in percent

    Returns:
        Tuple of (stop_loss, take_profit)
    """
    if side == "BUY":
        return entry_price * (1 - stop_pct / 100), entry_price * (1 + target_pct / 100)
    return entry_price * (1 + stop_pct / 100), entry_price * (1 - target_pct / 100)
