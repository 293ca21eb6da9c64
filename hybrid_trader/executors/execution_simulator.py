"""Paper-trading execution against a synthetic order book."""

import asyncio
import logging
import random
import time
from typing import Callable, Dict, List, Optional, Tuple

from hybrid_trader.config import ExecutionConfig
from hybrid_trader.executors.slippage_model import DynamicSlippageModel, SlippageModel
from hybrid_trader.logger import DecisionLogger
from hybrid_trader.models import (
    BUY,
    CANCELLED,
    FILLED,
    PARTIALLY_FILLED,
    PENDING,
    REJECTED,
    Fill,
    MarketSnapshot,
    Order,
    OrderBookLevel,
    OrderRequest,
    TradeLogEntry,
)
from hybrid_trader.order_validators.order_validator import OrderValidator
from hybrid_trader.portfolio.paper_account import PaperAccount, split_symbol

logger = logging.getLogger(__name__)

# Quote reserved on top of the notional when checking a BUY
FEE_BUFFER = 1.002


class ExecutionSimulator:
    """
    Simulated exchange for dry-run trading.

    MARKET orders walk the opposite side of the book level by level with
    per-level slippage and may stop early to simulate a partial fill. LIMIT
    orders fill atomically only when immediately marketable; nothing rests
    on the book. Every random draw comes from the injected generator.
    """

    def __init__(
        self,
        config: Optional[ExecutionConfig] = None,
        rng: Optional[random.Random] = None,
        account: Optional[PaperAccount] = None,
        slippage_model: Optional[SlippageModel] = None,
        validator: Optional[OrderValidator] = None,
        decision_logger: Optional[DecisionLogger] = None,
        clock: Optional[Callable[[], int]] = None
    ):
        """
        Initialize execution simulator.

        Args:
            config: Fees, slippage and partial-fill settings
            rng: Seeded generator for partial fills, latency and order ids
            account: Paper account to settle fills into
            slippage_model: Per-level slippage model (defaults to the dynamic model)
            validator: Order validator
            decision_logger: Collaborator receiving trade records
            clock: Millisecond clock for trade log timestamps
        """
        self.config = config or ExecutionConfig()
        self.rng = rng or random.Random()
        self.account = account or PaperAccount(self.config.initial_balance, self.config.quote_asset)
        self.slippage_model = slippage_model or DynamicSlippageModel(
            rate=self.config.slippage_rate,
            max_slippage=self.config.max_slippage,
        )
        self.validator = validator or OrderValidator()
        self.decision_logger = decision_logger
        self.clock = clock or (lambda: int(time.time() * 1000))

        self.open_orders: Dict[str, Order] = {}
        self.order_history: List[Order] = []
        self._order_counter = 0

    async def place_order(self, request: OrderRequest, snapshot: MarketSnapshot) -> Order:
        """
        Execute an order after a simulated network delay.

        Args:
            request: Order to execute
            snapshot: Order book to execute against

        Returns:
            Terminal Order (FILLED, PARTIALLY_FILLED or REJECTED)
        """
        low, high = self.config.latency_range_ms
        latency_ms = self.rng.uniform(low, high) if high > 0 else 0.0
        if latency_ms > 0:
            await asyncio.sleep(latency_ms / 1000)

        order = self.execute(request, snapshot)
        order.latency_ms = latency_ms
        return order

    async def place_stop_loss_order(
        self,
        symbol: str,
        side: str,
        quantity: float,
        stop_price: float,
        snapshot: MarketSnapshot,
        limit_price: Optional[float] = None
    ) -> Order:
        """
        Submit a protective order as a marketable-only LIMIT.

        Args:
            symbol: Trading pair symbol
            side: "BUY" or "SELL"
            quantity: Base-asset quantity
            stop_price: Trigger price
            snapshot: Order book to execute against
            limit_price: Limit price (defaults to the stop price)
        """
        request = OrderRequest(
            symbol=symbol,
            side=side,
            quantity=quantity,
            order_type="LIMIT",
            price=limit_price if limit_price is not None else stop_price,
            stop_price=stop_price,
        )
        return await self.place_order(request, snapshot)

    def execute(self, request: OrderRequest, snapshot: MarketSnapshot) -> Order:
        """
        Execute an order synchronously.

        Args:
            request: Order to execute
            snapshot: Order book to execute against

        Returns:
            Terminal Order

        Raises:
            ValueError: On a malformed request
        """
        self.validator.validate_request(request)

        order = Order(
            id=self._next_order_id(),
            symbol=request.symbol,
            side=request.side,
            order_type=request.order_type,
            quantity=request.quantity,
            price=request.price,
            stop_price=request.stop_price,
        )
        self.open_orders[order.id] = order

        rejection = self._check_preconditions(order, snapshot)
        if rejection:
            self._reject(order, rejection)
        elif order.order_type == "MARKET":
            self._execute_market(order, snapshot)
        else:
            self._execute_limit(order, snapshot)

        self.open_orders.pop(order.id, None)
        self.order_history.append(order)

        if order.status in (FILLED, PARTIALLY_FILLED):
            self.account.apply_fill(order)
            self.account.mark_to_market({order.symbol: snapshot.mid_price})
            logger.info(
                f"[PAPER] {order.side} {order.executed_quantity:.6f} {order.symbol} "
                f"@ {order.executed_price:.2f} | Fees: {order.fees:.4f} | "
                f"Slippage: {order.slippage * 100:.3f}% | {order.status}"
            )
            self._log_trade(order)

        return order

    def _check_preconditions(self, order: Order, snapshot: MarketSnapshot) -> str:
        if not self.validator.validate_order_size(order.symbol, order.quantity):
            min_size = self.validator.get_min_order_size(order.symbol)
            return f"Order size below minimum ({min_size})"

        base, quote = split_symbol(order.symbol)
        if order.side == BUY:
            required = order.quantity * snapshot.ask * FEE_BUFFER
            if not self.validator.validate_balance(self.account.balance(quote), required, quote):
                return "Insufficient balance"
        elif not self.validator.validate_balance(self.account.balance(base), order.quantity, base):
            return "Insufficient balance"
        return ""

    def _book_side(self, order: Order, snapshot: MarketSnapshot) -> Tuple[OrderBookLevel, ...]:
        if order.side == BUY:
            if snapshot.asks:
                return snapshot.asks
            return (OrderBookLevel(snapshot.ask, snapshot.ask_size),)
        if snapshot.bids:
            return snapshot.bids
        return (OrderBookLevel(snapshot.bid, snapshot.bid_size),)

    def _execute_market(self, order: Order, snapshot: MarketSnapshot) -> None:
        cfg = self.config
        remaining = order.quantity
        weighted_slippage = 0.0
        # A BUY may spend at most the quote balance, fees included
        budget = self.account.balance(split_symbol(order.symbol)[1]) if order.side == BUY else None

        for level in self._book_side(order, snapshot):
            if remaining <= 0:
                break
            fill_quantity = min(remaining, level.quantity)
            if fill_quantity <= 0:
                continue

            slippage = 0.0
            if cfg.enable_slippage:
                slippage = self.slippage_model.estimate(quantity=fill_quantity, snapshot=snapshot)
            price = self.slippage_model.apply(price=level.price, side=order.side, slippage=slippage)
            if budget is not None:
                affordable = budget / (price * (1 + cfg.fee_rate))
                if affordable < fill_quantity:
                    logger.debug(f"[PAPER] Order {order.id} capped at {affordable:.8f} by quote balance")
                    fill_quantity = affordable
                    remaining = 0.0
                if fill_quantity <= 1e-12:
                    break
                budget -= fill_quantity * price * (1 + cfg.fee_rate)
            fee = fill_quantity * price * cfg.fee_rate

            order.fills.append(Fill(price=price, quantity=fill_quantity, fee=fee))
            weighted_slippage += slippage * fill_quantity
            remaining = max(0.0, remaining - fill_quantity)

            if remaining > 0 and cfg.enable_partial_fills and self.rng.random() < cfg.partial_fill_probability:
                break

        if not order.fills:
            self._reject(order, "No liquidity available at current market levels")
            return

        self._settle(order)
        order.slippage = weighted_slippage / order.executed_quantity

    def _execute_limit(self, order: Order, snapshot: MarketSnapshot) -> None:
        if order.side == BUY:
            marketable = order.price >= snapshot.ask
            price = min(order.price, snapshot.ask)
            reference = f"ask {snapshot.ask}"
        else:
            marketable = order.price <= snapshot.bid
            price = max(order.price, snapshot.bid)
            reference = f"bid {snapshot.bid}"

        if not marketable:
            self._reject(order, f"Limit price {order.price} not marketable (current {reference})")
            return

        fee = order.quantity * price * self.config.fee_rate
        order.fills.append(Fill(price=price, quantity=order.quantity, fee=fee))
        self._settle(order)

    def _settle(self, order: Order) -> None:
        executed = sum(f.quantity for f in order.fills)
        order.executed_quantity = executed
        order.executed_price = sum(f.price * f.quantity for f in order.fills) / executed
        order.fees = sum(f.fee for f in order.fills)

        if executed < order.quantity - 1e-12:
            order.status = PARTIALLY_FILLED
            order.reason = f"Partially filled: {executed}/{order.quantity}"
        else:
            order.status = FILLED
            order.reason = "Order fully executed"

    def _reject(self, order: Order, reason: str) -> None:
        order.status = REJECTED
        order.reason = reason
        logger.warning(f"[PAPER] Order {order.id} rejected: {reason}")

    def _log_trade(self, order: Order) -> None:
        if self.decision_logger is None:
            return
        self.decision_logger.log_trade(TradeLogEntry(
            timestamp=self.clock(),
            symbol=order.symbol,
            side=order.side,
            price=order.executed_price,
            quantity=order.executed_quantity,
            fees=order.fees,
            order_id=order.id,
            status=order.status,
            reason=f"Paper trading: {order.reason}",
        ))

    def _next_order_id(self) -> str:
        self._order_counter += 1
        return f"paper_{self._order_counter}_{self.rng.getrandbits(36):09x}"

    def cancel_order(self, order_id: str) -> bool:
        """
        Cancel a pending order.

        Returns:
            True if the order was pending and is now CANCELLED
        """
        order = self.open_orders.get(order_id)
        if order is None or order.status != PENDING:
            return False
        order.status = CANCELLED
        del self.open_orders[order_id]
        self.order_history.append(order)
        logger.info(f"[PAPER] Order cancelled: {order_id}")
        return True

    def get_open_orders(self) -> List[Order]:
        return list(self.open_orders.values())

    def get_order_history(self, limit: int = 50) -> List[Order]:
        """Most recent orders first."""
        return list(reversed(self.order_history[-limit:])) if limit > 0 else []

    def get_detailed_stats(self) -> Dict[str, Dict[str, float]]:
        """
        Summarize execution quality and account state.

        Returns:
            Dictionary with account, execution and risk sections
        """
        history = self.order_history
        executed = [o for o in history if o.status in (FILLED, PARTIALLY_FILLED)]
        count = len(executed)

        return {
            "account": self.account.snapshot(),
            "execution": {
                "total_orders": float(len(history)),
                "total_fills": float(sum(len(o.fills) for o in executed)),
                "partial_fills": float(sum(1 for o in history if o.status == PARTIALLY_FILLED)),
                "rejected_orders": float(sum(1 for o in history if o.status == REJECTED)),
                "fill_rate": count / len(history) * 100 if history else 0.0,
                "avg_latency_ms": sum(o.latency_ms for o in executed) / count if count else 0.0,
                "avg_slippage_pct": sum(o.slippage for o in executed) / count * 100 if count else 0.0,
                "total_fees": sum(o.fees for o in executed),
            },
            "risk": {
                "current_drawdown": self.account.current_drawdown,
                "max_drawdown": self.account.max_drawdown,
                "daily_pnl": self.account.daily_pnl,
            },
        }

    def reset_account(self) -> None:
        self.account.reset()
        self.open_orders.clear()
        self.order_history = []
        logger.info("[PAPER] Account reset to initial state")
