"""Domain records and the enumerations stored in their string columns."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Type, TypeVar

E = TypeVar("E", bound=Enum)


def _parse(cls: Type[E], text: str, label: str) -> E:
    try:
        return cls(text.upper())
    except ValueError:
        raise ValueError(f"Unknown {label}: {text}") from None


class OrderType(str, Enum):
    """Kind of order."""

    LIMIT = "LIMIT"
    MARKET = "MARKET"

    @classmethod
    def parse(cls, s: str) -> "OrderType":
        """Parse an order type, ignoring case."""
        return _parse(cls, s, "order type")


class OrderSide(str, Enum):
    """Side of an order."""

    BUY = "BUY"
    SELL = "SELL"

    @classmethod
    def parse(cls, s: str) -> "OrderSide":
        """Parse an order side, ignoring case."""
        return _parse(cls, s, "order side")


class MarketRole(str, Enum):
    """Role of a party in a trade."""

    MAKER = "MAKER"
    TAKER = "TAKER"

    @classmethod
    def parse(cls, s: str) -> "MarketRole":
        """Parse a market role, ignoring case."""
        return _parse(cls, s, "market role")


class OrderStatus(str, Enum):
    """Lifecycle state of an order."""

    OPEN = "OPEN"
    FILLED = "FILLED"
    CANCELED = "CANCELED"
    REJECTED = "REJECTED"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"

    @classmethod
    def parse(cls, s: str) -> "OrderStatus":
        """Parse an order status, ignoring case."""
        return _parse(cls, s, "order status")


class TimeInForce(str, Enum):
    """How long an order stays on the book."""

    GTC = "GTC"  # good till cancelled
    IOC = "IOC"  # immediate or cancel
    FOK = "FOK"  # fill or kill

    @classmethod
    def parse(cls, s: str) -> "TimeInForce":
        """Parse a time-in-force value, ignoring case."""
        return _parse(cls, s, "time in force")


class MarketStatus(str, Enum):
    """Whether a market accepts orders."""

    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


@dataclass
class Market:
    """A trading pair and its fee and precision settings."""

    id: str
    base_asset: str
    quote_asset: str
    default_maker_fee: Decimal
    default_taker_fee: Decimal
    create_time: int
    update_time: int
    status: str
    min_base_amount: Decimal
    min_quote_amount: Decimal
    price_precision: int
    amount_precision: int

    def get_status(self) -> MarketStatus:
        """Return the market status; the stored text must match exactly."""
        try:
            return MarketStatus(self.status)
        except ValueError:
            raise ValueError(f"Unknown market status: {self.status}") from None


@dataclass
class Order:
    """An order with its amounts, fills and state."""

    id: str
    market_id: str
    user_id: str
    order_type: str
    side: str
    price: Decimal
    base_amount: Decimal
    quote_amount: Decimal
    maker_fee: Decimal
    taker_fee: Decimal
    create_time: int
    remained_base: Decimal
    remained_quote: Decimal
    filled_base: Decimal
    filled_quote: Decimal
    filled_fee: Decimal
    update_time: int
    status: str
    client_order_id: Optional[str] = None
    post_only: Optional[bool] = None
    time_in_force: Optional[str] = None
    expires_at: Optional[int] = None

    def get_order_type(self) -> OrderType:
        """Return the order type as an enum member."""
        return OrderType.parse(self.order_type)

    def get_side(self) -> OrderSide:
        """Return the order side as an enum member."""
        return OrderSide.parse(self.side)

    def get_status(self) -> OrderStatus:
        """Return the order status as an enum member."""
        return OrderStatus.parse(self.status)


@dataclass
class Trade:
    """An executed match between a buy and a sell order."""

    id: str
    timestamp: int
    market_id: str
    price: Decimal
    base_amount: Decimal
    quote_amount: Decimal
    buyer_user_id: str
    buyer_order_id: str
    buyer_fee: Decimal
    seller_user_id: str
    seller_order_id: str
    seller_fee: Decimal
    taker_side: str
    is_liquidation: Optional[bool] = None


@dataclass
class Wallet:
    """A user's balance of one asset."""

    user_id: str
    asset: str
    available: Decimal
    locked: Decimal
    update_time: int
    reserved: Decimal
    total_deposited: Decimal
    total_withdrawn: Decimal


@dataclass
class MarketStat:
    """Rolling 24-hour statistics for a market."""

    market_id: str
    high_24h: Decimal
    low_24h: Decimal
    volume_24h: Decimal
    price_change_24h: Decimal
    last_price: Decimal
    last_update_time: int


@dataclass
class FeeTreasury:
    """Fees collected in one asset for one market."""

    market_id: str
    asset: str
    treasury_address: str
    collected_amount: Decimal
    last_update_time: int