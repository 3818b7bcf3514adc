"""The repository that gives access to every table of the exchange database."""

from __future__ import annotations

from .fee_treasury import FeeTreasuryRepository
from .market_stats import MarketStatRepository
from .markets import MarketRepository
from .orders import OrderRepository
from .trades import TradeRepository


class Repository(
    OrderRepository,
    TradeRepository,
    MarketRepository,
    MarketStatRepository,
    FeeTreasuryRepository,
):
    """Reads and writes orders, wallets, trades, markets, statistics and fees.

    Built on one connection pool; it is a ``DatabaseProvider``. Operations
    that call each other on the same thread share one transaction.
    """