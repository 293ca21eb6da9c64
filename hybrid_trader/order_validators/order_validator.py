"""Order validation logic."""

import logging

from hybrid_trader.models import BUY, SELL, OrderRequest

logger = logging.getLogger(__name__)

MIN_ORDER_SIZES = {
    "BTCUSDT": 0.00001,
    "ETHUSDT": 0.0001,
    "BNBUSDT": 0.001,
    "ADAUSDT": 1.0,
    "SOLUSDT": 0.01,
}
DEFAULT_MIN_ORDER_SIZE = 0.001

ORDER_TYPES = ("MARKET", "LIMIT")


class OrderValidator:
    """Handles validation of simulated orders."""

    def validate_request(self, request: OrderRequest) -> None:
        """
        Check the shape of an order request.

        Args:
            request: Order to check

        Raises:
            ValueError: On a malformed request
        """
        if request.side not in (BUY, SELL):
            raise ValueError(f"Unknown order side: {request.side}")
        if request.order_type not in ORDER_TYPES:
            raise ValueError(f"Unknown order type: {request.order_type}")
        if request.quantity <= 0:
            raise ValueError(f"Order quantity must be positive, got {request.quantity}")
        if request.order_type == "LIMIT" and (request.price is None or request.price <= 0):
            raise ValueError("LIMIT orders need a positive price")

    def get_min_order_size(self, symbol: str) -> float:
        return MIN_ORDER_SIZES.get(symbol, DEFAULT_MIN_ORDER_SIZE)

    def validate_order_size(self, symbol: str, quantity: float) -> bool:
        """
        Validate that order size meets the symbol minimum.

        Args:
            symbol: Trading pair symbol
            quantity: Base-asset quantity

        Returns:
            True if order size is valid, False otherwise
        """
        min_size = self.get_min_order_size(symbol)
        if quantity < min_size:
            logger.warning(f"Order size {quantity} below minimum {min_size} for {symbol}")
            return False
        return True

    def validate_price(self, price: float) -> bool:
        if price <= 0:
            logger.error(f"Invalid price: {price} (must be positive)")
            return False
        return True

    def validate_balance(self, available: float, required: float, asset: str) -> bool:
        """
        Validate that the account holds enough of `asset`.

        Returns:
            True if the balance covers the requirement
        """
        if required > available:
            logger.warning(f"Insufficient {asset}: need {required:.8f}, have {available:.8f}")
            return False
        return True
