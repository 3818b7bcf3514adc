import dataclasses
from decimal import Decimal

import pytest

from exchangedb.models import (
    Market,
    MarketRole,
    MarketStatus,
    Order,
    OrderSide,
    OrderStatus,
    OrderType,
    TimeInForce,
    Trade,
)


def make_market(status="ACTIVE"):
    return Market(
        id="m1",
        base_asset="BTC",
        quote_asset="USDT",
        default_maker_fee=Decimal("0.001"),
        default_taker_fee=Decimal("0.002"),
        create_time=1,
        update_time=1,
        status=status,
        min_base_amount=Decimal("0.0001"),
        min_quote_amount=Decimal("1"),
        price_precision=2,
        amount_precision=4,
    )


def make_order(order_type="LIMIT", side="BUY", status="OPEN"):
    return Order(
        id="o1",
        market_id="m1",
        user_id="u1",
        order_type=order_type,
        side=side,
        price=Decimal("100"),
        base_amount=Decimal("2"),
        quote_amount=Decimal("200"),
        maker_fee=Decimal("0.001"),
        taker_fee=Decimal("0.002"),
        create_time=1,
        remained_base=Decimal("2"),
        remained_quote=Decimal("200"),
        filled_base=Decimal("0"),
        filled_quote=Decimal("0"),
        filled_fee=Decimal("0"),
        update_time=1,
        status=status,
    )


@pytest.mark.parametrize(
    "enum_cls", [OrderType, OrderSide, MarketRole, OrderStatus, TimeInForce]
)
def test_parse_round_trips_every_member(enum_cls):
    for member in enum_cls:
        assert enum_cls.parse(member.value) is member
        assert enum_cls.parse(member.value.lower()) is member


def test_parse_is_case_insensitive():
    assert OrderSide.parse("Buy") is OrderSide.BUY
    assert OrderStatus.parse("partially_filled") is OrderStatus.PARTIALLY_FILLED
    assert TimeInForce.parse("fok") is TimeInForce.FOK


@pytest.mark.parametrize(
    "enum_cls, label",
    [
        (OrderType, "order type"),
        (OrderSide, "order side"),
        (MarketRole, "market role"),
        (OrderStatus, "order status"),
        (TimeInForce, "time in force"),
    ],
)
def test_parse_unknown_value(enum_cls, label):
    with pytest.raises(ValueError, match=f"Unknown {label}: bogus"):
        enum_cls.parse("bogus")


def test_enum_values_are_storage_strings():
    assert OrderStatus.parse("partially_filled").value == "PARTIALLY_FILLED"
    assert OrderType.parse("market").value == "MARKET"
    assert make_market("CLOSED").get_status().value == "CLOSED"
    assert OrderSide.parse("sell") == "SELL"


def test_market_get_status():
    assert make_market("ACTIVE").get_status() is MarketStatus.ACTIVE
    assert make_market("CLOSED").get_status() is MarketStatus.CLOSED


def test_market_get_status_is_case_sensitive():
    with pytest.raises(ValueError, match="Unknown market status: active"):
        make_market("active").get_status()


def test_order_enum_accessors():
    order = make_order(order_type="market", side="sell", status="filled")
    assert order.get_order_type() is OrderType.MARKET
    assert order.get_side() is OrderSide.SELL
    assert order.get_status() is OrderStatus.FILLED


def test_order_invalid_side_raises():
    with pytest.raises(ValueError, match="Unknown order side: SIDEWAYS"):
        make_order(side="SIDEWAYS").get_side()


def test_order_optional_fields_default_to_none():
    order = make_order()
    assert order.client_order_id is None
    assert order.post_only is None
    assert order.time_in_force is None
    assert order.expires_at is None


def test_order_copy_is_independent():
    order = make_order()
    changed = dataclasses.replace(order, status=OrderStatus.CANCELED.value)
    assert order.get_status() is OrderStatus.OPEN
    assert changed.get_status() is OrderStatus.CANCELED


def test_trade_liquidation_flag_defaults_to_none():
    trade = Trade(
        id="t1",
        timestamp=5,
        market_id="m1",
        price=Decimal("100"),
        base_amount=Decimal("1"),
        quote_amount=Decimal("100"),
        buyer_user_id="u1",
        buyer_order_id="o1",
        buyer_fee=Decimal("0"),
        seller_user_id="u2",
        seller_order_id="o2",
        seller_fee=Decimal("0"),
        taker_side=OrderSide.BUY.value,
    )
    assert trade.is_liquidation is None
    assert OrderSide.parse(trade.taker_side) is OrderSide.BUY