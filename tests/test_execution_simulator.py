import asyncio
import random

import pytest

from hybrid_trader.config import ExecutionConfig
from hybrid_trader.executors.execution_simulator import ExecutionSimulator
from hybrid_trader.executors.slippage_model import DynamicSlippageModel, FixedRateSlippageModel
from hybrid_trader.logger import DecisionLogger
from hybrid_trader.models import (
    BUY,
    FILLED,
    PARTIALLY_FILLED,
    REJECTED,
    SELL,
    MarketSnapshot,
    OrderBookLevel,
    OrderRequest,
)
from hybrid_trader.snapshot_builders.market_snapshot_builder import MarketSnapshotBuilder

PRICE = 50000.0


def _simulator(seed=1, **overrides):
    settings = dict(latency_range_ms=(0.0, 0.0), enable_partial_fills=False)
    settings.update(overrides)
    return ExecutionSimulator(
        config=ExecutionConfig(**settings),
        rng=random.Random(seed),
        decision_logger=DecisionLogger(),
        clock=lambda: 1_000,
    )


@pytest.fixture
def book():
    # Two ask levels: 10 @ 50025 and 5 @ 50050
    return MarketSnapshotBuilder().build_synthetic(PRICE, "BTCUSDT")


def test_market_buy_fills_at_best_ask_plus_slippage(book):
    sim = _simulator()
    order = sim.execute(OrderRequest("BTCUSDT", BUY, 0.1), book)

    assert order.status == FILLED
    assert order.executed_quantity == pytest.approx(0.1)
    assert order.executed_price >= book.ask
    assert order.executed_price <= book.ask * 1.002 + 1e-9
    assert order.fees == pytest.approx(0.1 * order.executed_price * 0.001)
    assert sim.account.balance("BTC") == pytest.approx(0.1)
    assert sim.account.balance("USDT") == pytest.approx(10000 - 0.1 * order.executed_price - order.fees)


def test_market_order_walks_the_book(book):
    sim = _simulator(initial_balance=10_000_000.0)
    order = sim.execute(OrderRequest("BTCUSDT", BUY, 15.0), book)

    assert order.status == FILLED
    assert len(order.fills) == 2
    assert order.fills[0].quantity == pytest.approx(10.0)
    assert order.fills[1].quantity == pytest.approx(5.0)
    assert order.fills[1].price > order.fills[0].price


def test_exhausted_book_is_partial(book):
    sim = _simulator(initial_balance=10_000_000.0)
    order = sim.execute(OrderRequest("BTCUSDT", BUY, 20.0), book)
    assert order.status == PARTIALLY_FILLED
    assert order.executed_quantity == pytest.approx(15.0)


def test_buy_walk_never_spends_more_than_the_quote_balance():
    # The top-of-book balance check passes, but the second level is far more expensive
    thin = MarketSnapshot(
        bid=99.0,
        ask=100.0,
        bid_size=10.0,
        ask_size=1.0,
        bids=(OrderBookLevel(99.0, 10.0),),
        asks=(OrderBookLevel(100.0, 1.0), OrderBookLevel(150.0, 10.0)),
    )
    sim = _simulator(initial_balance=1000.0, enable_slippage=False)
    order = sim.execute(OrderRequest("BTCUSDT", BUY, 9.0), thin)

    assert order.status == PARTIALLY_FILLED
    assert order.fills[0].quantity == pytest.approx(1.0)
    assert order.fills[1].quantity == pytest.approx(899.9 / (150.0 * 1.001))
    assert sim.account.balance("USDT") == pytest.approx(0.0, abs=1e-6)
    assert sim.account.balance("USDT") >= -1e-9


def test_random_partial_fill_stops_between_levels(book):
    sim = _simulator(initial_balance=10_000_000.0, enable_partial_fills=True, partial_fill_probability=1.0)
    order = sim.execute(OrderRequest("BTCUSDT", BUY, 15.0), book)
    assert order.status == PARTIALLY_FILLED
    assert order.executed_quantity == pytest.approx(10.0)


def test_single_level_fill_is_never_partial(book):
    sim = _simulator(enable_partial_fills=True, partial_fill_probability=1.0)
    assert sim.execute(OrderRequest("BTCUSDT", BUY, 0.1), book).status == FILLED


def test_rejects_below_minimum_size(book):
    order = _simulator().execute(OrderRequest("BTCUSDT", BUY, 0.000001), book)
    assert order.status == REJECTED
    assert order.reason == "Order size below minimum (1e-05)"


def test_rejects_insufficient_balance(book):
    sim = _simulator()
    assert sim.execute(OrderRequest("BTCUSDT", BUY, 1.0), book).reason == "Insufficient balance"
    assert sim.execute(OrderRequest("BTCUSDT", SELL, 0.1), book).reason == "Insufficient balance"
    assert sim.account.balance("USDT") == 10000.0


def test_rejects_empty_book():
    empty = MarketSnapshot(bid=100.0, ask=101.0, bid_size=0.0, ask_size=0.0)
    order = _simulator().execute(OrderRequest("BTCUSDT", BUY, 1.0), empty)
    assert order.status == REJECTED
    assert order.reason == "No liquidity available at current market levels"


def test_limit_orders_fill_only_when_marketable(book):
    sim = _simulator()
    passive = sim.execute(OrderRequest("BTCUSDT", BUY, 0.1, order_type="LIMIT", price=49000.0), book)
    assert passive.status == REJECTED
    assert "not marketable" in passive.reason

    marketable = sim.execute(OrderRequest("BTCUSDT", BUY, 0.1, order_type="LIMIT", price=51000.0), book)
    assert marketable.status == FILLED
    assert marketable.executed_price == pytest.approx(book.ask)


def test_sell_round_trip_realizes_pnl(book):
    sim = _simulator()
    sim.execute(OrderRequest("BTCUSDT", BUY, 0.1), book)
    higher = MarketSnapshotBuilder().build_synthetic(PRICE * 1.1, "BTCUSDT")
    order = sim.execute(OrderRequest("BTCUSDT", SELL, 0.1), higher)

    assert order.status == FILLED
    assert order.executed_price <= higher.bid
    assert sim.account.balance("BTC") == pytest.approx(0.0)
    assert sim.account.realized_pnl > 0


@pytest.mark.parametrize("request_kwargs", [
    dict(symbol="BTCUSDT", side=BUY, quantity=0.0),
    dict(symbol="BTCUSDT", side="HOLD", quantity=1.0),
    dict(symbol="BTCUSDT", side=BUY, quantity=1.0, order_type="LIMIT"),
    dict(symbol="BTCUSDT", side=BUY, quantity=1.0, order_type="STOP"),
])
def test_malformed_requests_raise(book, request_kwargs):
    with pytest.raises(ValueError):
        _simulator().execute(OrderRequest(**request_kwargs), book)


def test_order_ids_are_seeded(book):
    first = _simulator(seed=5).execute(OrderRequest("BTCUSDT", BUY, 0.1), book)
    second = _simulator(seed=5).execute(OrderRequest("BTCUSDT", BUY, 0.1), book)
    assert first.id == second.id
    assert first.id.startswith("paper_1_")


def test_place_order_simulates_latency(book):
    sim = _simulator(latency_range_ms=(5.0, 5.0))
    order = asyncio.run(sim.place_order(OrderRequest("BTCUSDT", BUY, 0.1), book))
    assert order.status == FILLED
    assert order.latency_ms == pytest.approx(5.0)


def test_stop_loss_order_is_marketable_limit(book):
    sim = _simulator()
    asyncio.run(sim.place_order(OrderRequest("BTCUSDT", BUY, 0.1), book))
    order = asyncio.run(sim.place_stop_loss_order("BTCUSDT", SELL, 0.1, stop_price=49000.0, snapshot=book))
    assert order.order_type == "LIMIT"
    assert order.stop_price == 49000.0
    assert order.status == FILLED
    assert order.executed_price == pytest.approx(book.bid)


def test_history_stats_and_trade_log(book):
    sim = _simulator()
    sim.execute(OrderRequest("BTCUSDT", BUY, 0.1), book)
    sim.execute(OrderRequest("BTCUSDT", BUY, 1.0), book)

    history = sim.get_order_history()
    assert [o.status for o in history] == [REJECTED, FILLED]
    assert len(sim.get_order_history(limit=1)) == 1
    assert sim.get_open_orders() == []
    assert sim.cancel_order(history[0].id) is False

    stats = sim.get_detailed_stats()
    assert stats["execution"]["total_orders"] == 2
    assert stats["execution"]["rejected_orders"] == 1
    assert stats["execution"]["fill_rate"] == pytest.approx(50.0)

    trades = sim.decision_logger.get_entries("trade")
    assert len(trades) == 1
    assert trades[0]["dry_run"] is True
    assert trades[0]["timestamp"] == 1_000

    sim.reset_account()
    assert sim.get_order_history() == []
    assert sim.account.balance("USDT") == 10000.0


def test_slippage_models(book):
    fixed = FixedRateSlippageModel(0.001)
    assert fixed.apply(price=100.0, side=BUY, slippage=fixed.estimate(quantity=1.0, snapshot=book)) == \
        pytest.approx(100.1)
    assert fixed.apply(price=100.0, side=SELL, slippage=0.001) == pytest.approx(99.9)

    dynamic = DynamicSlippageModel(rate=0.0005, max_slippage=0.002)
    tight = MarketSnapshotBuilder(half_spread=0.0001).build_synthetic(100.0)
    # Tiny order in a tight book pays only the base rate plus negligible size impact
    assert dynamic.estimate(quantity=0.001, snapshot=tight) == pytest.approx(0.0005, abs=1e-6)
    # Large order in a wide book is capped
    assert dynamic.estimate(quantity=100.0, snapshot=book) == 0.002
