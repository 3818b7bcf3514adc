from decimal import Decimal

import pytest

from exchangedb.connection import (
    InsufficientBalanceError,
    RepositoryError,
    create_schema,
    establish_connection_pool,
)
from exchangedb.filters import OrderFilter
from exchangedb.markets import MarketRepository
from exchangedb.models import Market, Order, OrderStatus
from exchangedb.orders import OrderRepository
from exchangedb.pagination import Pagination


def make_market(market_id="m1", base="BTC", quote="USDT"):
    return Market(
        id=market_id,
        base_asset=base,
        quote_asset=quote,
        default_maker_fee=Decimal("0.001"),
        default_taker_fee=Decimal("0.002"),
        create_time=1,
        update_time=1,
        status="ACTIVE",
        min_base_amount=Decimal("0.0001"),
        min_quote_amount=Decimal("1"),
        price_precision=2,
        amount_precision=4,
    )


def make_order(order_id, side, *, user_id="alice", market_id="m1", base="1", quote="100"):
    base_amount = Decimal(base)
    quote_amount = Decimal(quote)
    return Order(
        id=order_id,
        market_id=market_id,
        user_id=user_id,
        order_type="LIMIT",
        side=side,
        price=Decimal("100"),
        base_amount=base_amount,
        quote_amount=quote_amount,
        maker_fee=Decimal("0.001"),
        taker_fee=Decimal("0.002"),
        create_time=1,
        remained_base=base_amount,
        remained_quote=quote_amount,
        filled_base=Decimal("0"),
        filled_quote=Decimal("0"),
        filled_fee=Decimal("0"),
        update_time=1,
        status="OPEN",
    )


@pytest.fixture
def pool():
    pool = establish_connection_pool(":memory:", 2)
    with pool.connection() as conn:
        create_schema(conn)
    MarketRepository(pool).create_market(make_market())
    yield pool
    pool.close()


@pytest.fixture
def repo(pool):
    return OrderRepository(pool)


DEPOSIT = Decimal("1000")


def test_create_buy_order_locks_quote(repo):
    repo.deposit_balance("alice", "USDT", DEPOSIT)
    order = make_order("o1", "BUY")
    stored = repo.create_order(order)
    assert stored == order
    assert repo.get_order("o1") == order
    wallet = repo.get_wallet("alice", "USDT")
    assert wallet.locked == order.quote_amount
    assert wallet.available == DEPOSIT - order.quote_amount


def test_create_sell_order_locks_base(repo):
    repo.deposit_balance("alice", "BTC", DEPOSIT)
    order = make_order("o1", "sell", base="2.5")
    repo.create_order(order)
    wallet = repo.get_wallet("alice", "BTC")
    assert wallet.locked == order.base_amount
    assert wallet.available + wallet.locked == DEPOSIT


def test_create_without_funds_stores_nothing(repo):
    with pytest.raises(InsufficientBalanceError, match="Failed to update buyer balance"):
        repo.create_order(make_order("o1", "BUY"))
    with pytest.raises(RepositoryError, match="Order not found"):
        repo.get_order("o1")


def test_create_in_unknown_market_raises(repo):
    repo.deposit_balance("alice", "USDT", DEPOSIT)
    with pytest.raises(RepositoryError, match="Failed to fetch market"):
        repo.create_order(make_order("o1", "BUY", market_id="nowhere"))


def test_create_with_invalid_side_raises(repo):
    repo.deposit_balance("alice", "USDT", DEPOSIT)
    with pytest.raises(RepositoryError, match="Invalid order side"):
        repo.create_order(make_order("o1", "HOLD"))


def test_failed_insert_rolls_back_lock(repo):
    repo.deposit_balance("alice", "USDT", DEPOSIT)
    order = make_order("o1", "BUY")
    repo.create_order(order)
    with pytest.raises(RepositoryError):
        repo.create_order(order)
    wallet = repo.get_wallet("alice", "USDT")
    assert wallet.locked == order.quote_amount


def test_get_missing_order_raises(repo):
    with pytest.raises(RepositoryError, match="Order not found"):
        repo.get_order("missing")


def test_cancel_order_unlocks_funds(repo):
    repo.deposit_balance("alice", "USDT", DEPOSIT)
    repo.create_order(make_order("o1", "BUY"))
    canceled = repo.cancel_order("o1")
    assert canceled.get_status() is OrderStatus.CANCELED
    assert repo.get_order("o1").status == "CANCELED"
    wallet = repo.get_wallet("alice", "USDT")
    assert wallet.available == DEPOSIT
    assert wallet.locked == 0


def test_cancel_twice_raises(repo):
    repo.deposit_balance("alice", "USDT", DEPOSIT)
    repo.create_order(make_order("o1", "BUY"))
    repo.cancel_order("o1")
    with pytest.raises(RepositoryError, match="final state"):
        repo.cancel_order("o1")
    assert repo.get_wallet("alice", "USDT").available == DEPOSIT


def test_cancel_missing_order_raises(repo):
    with pytest.raises(RepositoryError, match="Order not found"):
        repo.cancel_order("missing")


def test_cancel_all_orders_in_market(pool, repo):
    MarketRepository(pool).create_market(make_market("m2"))
    repo.deposit_balance("alice", "USDT", DEPOSIT)
    repo.deposit_balance("bob", "BTC", DEPOSIT)
    repo.create_order(make_order("o1", "BUY"))
    repo.create_order(make_order("o2", "SELL", user_id="bob"))
    repo.create_order(make_order("o3", "BUY", market_id="m2"))

    canceled = repo.cancel_all_orders("m1")
    assert [o.id for o in canceled] == ["o1", "o2"]
    assert all(o.status == "CANCELED" for o in canceled)
    assert repo.get_order("o3").status == "OPEN"
    assert repo.get_wallet("bob", "BTC").available == DEPOSIT
    assert repo.get_wallet("bob", "BTC").locked == 0


def test_cancel_all_orders_unknown_market_raises(repo):
    with pytest.raises(RepositoryError, match="Market not found"):
        repo.cancel_all_orders("nowhere")


def test_cancel_all_global_orders(pool, repo):
    MarketRepository(pool).create_market(make_market("m2"))
    repo.deposit_balance("alice", "USDT", DEPOSIT)
    repo.create_order(make_order("o1", "BUY"))
    repo.create_order(make_order("o2", "BUY", market_id="m2"))
    repo.create_order(make_order("o3", "BUY"))
    repo.update_order_status("o3", OrderStatus.FILLED)

    canceled = repo.cancel_all_global_orders()
    assert sorted(o.id for o in canceled) == ["o1", "o2"]
    assert repo.get_order("o3").status == "FILLED"
    assert repo.get_active_orders("m1") == []


def test_update_order_status(repo):
    repo.deposit_balance("alice", "USDT", DEPOSIT)
    repo.create_order(make_order("o1", "BUY"))
    updated = repo.update_order_status("o1", OrderStatus.PARTIALLY_FILLED)
    assert updated.get_status() is OrderStatus.PARTIALLY_FILLED
    assert repo.get_order("o1").status == "PARTIALLY_FILLED"


def test_update_missing_order_status_raises(repo):
    with pytest.raises(RepositoryError, match="Failed to update order status"):
        repo.update_order_status("missing", OrderStatus.FILLED)


def test_get_active_orders_returns_open_orders_of_all_markets(pool, repo):
    MarketRepository(pool).create_market(make_market("m2"))
    repo.deposit_balance("alice", "USDT", DEPOSIT)
    repo.create_order(make_order("o1", "BUY"))
    repo.create_order(make_order("o2", "BUY", market_id="m2"))
    repo.create_order(make_order("o3", "BUY"))
    repo.update_order_status("o3", OrderStatus.PARTIALLY_FILLED)
    assert [o.id for o in repo.get_active_orders("m1")] == ["o1", "o2"]


def test_list_orders_pages(repo):
    repo.deposit_balance("alice", "USDT", DEPOSIT)
    ids = ["o1", "o2", "o3"]
    for order_id in ids:
        repo.create_order(make_order(order_id, "BUY"))

    first = repo.list_orders(OrderFilter(), Pagination(limit=2, offset=0))
    assert [o.id for o in first.items] == ids[:2]
    assert first.has_more is True
    assert first.next_offset == 2
    assert first.total_count == len(ids)

    second = repo.list_orders(OrderFilter(), Pagination(limit=2, offset=first.next_offset))
    assert [o.id for o in second.items] == ids[2:]
    assert second.has_more is False
    assert second.next_offset is None


def test_list_orders_filters(repo):
    repo.deposit_balance("alice", "USDT", DEPOSIT)
    repo.deposit_balance("bob", "BTC", DEPOSIT)
    repo.create_order(make_order("o1", "BUY"))
    repo.create_order(make_order("o2", "SELL", user_id="bob"))
    page = repo.list_orders(OrderFilter(side="SELL"))
    assert [o.id for o in page.items] == ["o2"]
    assert page.total_count == 1
    page = repo.list_orders(OrderFilter(user_id="alice", status="OPEN"))
    assert [o.id for o in page.items] == ["o1"]


def test_list_orders_default_limit(repo):
    repo.deposit_balance("alice", "USDT", DEPOSIT)
    for i in range(11):
        repo.create_order(make_order(f"o{i:02d}", "BUY", quote="1"))
    page = repo.list_orders(OrderFilter())
    assert len(page.items) == 10
    assert page.has_more is True
    assert page.next_offset == 10
    assert page.total_count == 11