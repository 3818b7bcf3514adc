"""Abstract reader and writer interfaces for the exchange database.

``ReadDatabaseProvider``, ``WriteDatabaseProvider`` and ``DatabaseProvider``
are satisfied by any class that derives from all of their component
interfaces, whether or not it names the combined interface itself.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import List, Optional, Tuple, Type

from .filters import OrderFilter, TradeFilter, WalletFilter
from .models import FeeTreasury, Market, MarketStat, Order, OrderStatus, Trade, Wallet
from .pagination import Paginated, Pagination


class OrderDatabaseReader(ABC):
    """Read access to orders."""

    @abstractmethod
    def get_order(self, order_id: str) -> Optional[Order]:
        """Return the order with the given id."""

    @abstractmethod
    def get_active_orders(self, market_id: str) -> List[Order]:
        """Return open orders."""

    @abstractmethod
    def list_orders(
        self, filter: OrderFilter, pagination: Optional[Pagination] = None
    ) -> Paginated[Order]:
        """Return one page of orders matching ``filter``."""


class OrderDatabaseWriter(ABC):
    """Write access to orders."""

    @abstractmethod
    def create_order(self, order_data: Order) -> Order:
        """Lock the funds an order needs and store it."""

    @abstractmethod
    def cancel_order(self, order_id: str) -> Order:
        """Cancel an order and unlock its remaining funds."""

    @abstractmethod
    def cancel_all_orders(self, market_id: str) -> List[Order]:
        """Cancel every active order in a market."""

    @abstractmethod
    def cancel_all_global_orders(self) -> List[Order]:
        """Cancel every active order in every market."""

    @abstractmethod
    def update_order_status(self, order_id: str, status: OrderStatus) -> Order:
        """Set the status of an order."""


class WalletDatabaseReader(ABC):
    """Read access to wallets."""

    @abstractmethod
    def get_wallet(self, user_id: str, asset: str) -> Optional[Wallet]:
        """Return a user's wallet for an asset."""

    @abstractmethod
    def list_wallets(
        self, filter: WalletFilter, pagination: Optional[Pagination] = None
    ) -> Paginated[Wallet]:
        """Return one page of wallets matching ``filter``."""


class WalletDatabaseWriter(ABC):
    """Write access to wallets."""

    @abstractmethod
    def deposit_balance(self, user_id: str, asset: str, amount: Decimal) -> Wallet:
        """Add funds to a wallet."""

    @abstractmethod
    def withdraw_balance(self, user_id: str, asset: str, amount: Decimal) -> Wallet:
        """Remove available funds from a wallet."""

    @abstractmethod
    def lock_balance(self, user_id: str, asset: str, amount: Decimal) -> Wallet:
        """Move funds from available to locked."""

    @abstractmethod
    def unlock_balance(self, user_id: str, asset: str, amount: Decimal) -> Wallet:
        """Release locked funds."""


class TradeDatabaseReader(ABC):
    """Read access to trades."""

    @abstractmethod
    def list_trades(
        self, filter: TradeFilter, pagination: Optional[Pagination] = None
    ) -> Paginated[Trade]:
        """Return one page of trades matching ``filter``."""


class TradeDatabaseWriter(ABC):
    """Settlement of trades."""

    @abstractmethod
    def execute_limit_trade(
        self,
        is_buyer_taker: bool,
        market_id: str,
        base_asset: str,
        quote_asset: str,
        buyer_user_id: str,
        seller_user_id: str,
        buyer_order_id: str,
        seller_order_id: str,
        price: Decimal,
        base_amount: Decimal,
        quote_amount: Decimal,
        buyer_fee_rate: Decimal,
        seller_fee_rate: Decimal,
    ) -> Trade:
        """Settle a match between a buy and a sell order and record the trade."""


class MarketDatabaseReader(ABC):
    """Read access to markets."""

    @abstractmethod
    def get_market(self, market_id: str) -> Optional[Market]:
        """Return the market with the given id."""

    @abstractmethod
    def list_markets(self) -> List[Market]:
        """Return every market."""


class MarketDatabaseWriter(ABC):
    """Write access to markets."""

    @abstractmethod
    def create_market(self, market_data: Market) -> Market:
        """Store a new market."""


class MarketStatDatabaseReader(ABC):
    """Read access to market statistics."""

    @abstractmethod
    def get_market_stats(self, market_id: str) -> Optional[MarketStat]:
        """Return the statistics of a market."""


class MarketStatDatabaseWriter(ABC):
    """Write access to market statistics."""

    @abstractmethod
    def upsert_market_stats(
        self,
        market_id: str,
        high_24h: Decimal,
        low_24h: Decimal,
        volume_24h: Decimal,
        price_change_24h: Decimal,
        last_price: Decimal,
    ) -> MarketStat:
        """Create or replace the statistics of a market."""


class FeeTreasuryDatabaseReader(ABC):
    """Read access to fee treasuries."""

    @abstractmethod
    def get_fee_treasury(self, market_id: str) -> Optional[FeeTreasury]:
        """Return a fee treasury of a market."""

    @abstractmethod
    def list_fee_treasuries(self) -> List[FeeTreasury]:
        """Return every fee treasury."""


class FeeTreasuryDatabaseWriter(ABC):
    """Write access to fee treasuries."""

    @abstractmethod
    def create_fee_treasury(self, fee_treasury_data: FeeTreasury) -> FeeTreasury:
        """Store a new fee treasury."""

    @abstractmethod
    def transfer_to_fee_treasury(self, fee_amount: Decimal) -> FeeTreasury:
        """Set the collected amount of the fee treasuries."""


_READERS: Tuple[Type[ABC], ...] = (
    OrderDatabaseReader,
    WalletDatabaseReader,
    TradeDatabaseReader,
    MarketDatabaseReader,
    MarketStatDatabaseReader,
    FeeTreasuryDatabaseReader,
)

_WRITERS: Tuple[Type[ABC], ...] = (
    OrderDatabaseWriter,
    WalletDatabaseWriter,
    TradeDatabaseWriter,
    MarketDatabaseWriter,
    MarketStatDatabaseWriter,
    FeeTreasuryDatabaseWriter,
)


def _derives_from_all(candidate: type, bases: Tuple[type, ...]):
    mro = getattr(candidate, "__mro__", ())
    return True if all(base in mro for base in bases) else NotImplemented


class ReadDatabaseProvider(
    OrderDatabaseReader,
    WalletDatabaseReader,
    TradeDatabaseReader,
    MarketDatabaseReader,
    MarketStatDatabaseReader,
    FeeTreasuryDatabaseReader,
):
    """Every reader interface together."""

    @classmethod
    def __subclasshook__(cls, candidate):
        if cls is ReadDatabaseProvider:
            return _derives_from_all(candidate, _READERS)
        return NotImplemented


class WriteDatabaseProvider(
    OrderDatabaseWriter,
    WalletDatabaseWriter,
    TradeDatabaseWriter,
    MarketDatabaseWriter,
    MarketStatDatabaseWriter,
    FeeTreasuryDatabaseWriter,
):
    """Every writer interface together."""

    @classmethod
    def __subclasshook__(cls, candidate):
        if cls is WriteDatabaseProvider:
            return _derives_from_all(candidate, _WRITERS)
        return NotImplemented


class DatabaseProvider(ReadDatabaseProvider, WriteDatabaseProvider):
    """Full read and write access to the exchange database."""

    @classmethod
    def __subclasshook__(cls, candidate):
        if cls is DatabaseProvider:
            return _derives_from_all(candidate, _READERS + _WRITERS)
        return NotImplemented