"""Immutable filter criteria for list and count queries.

Every criterion defaults to ``None``, meaning "do not filter on this".
Derive a narrower filter with ``dataclasses.replace``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class OrderFilter:
    """Criteria for selecting orders."""

    user_id: Optional[str] = None
    market_id: Optional[str] = None
    order_id: Optional[str] = None
    side: Optional[str] = None
    status: Optional[str] = None
    order_type: Optional[str] = None


@dataclass(frozen=True)
class TradeFilter:
    """Criteria for selecting trades; times bound the trade timestamp inclusively."""

    market_id: Optional[str] = None
    buyer_order_id: Optional[str] = None
    seller_order_id: Optional[str] = None
    buyer_user_id: Optional[str] = None
    seller_user_id: Optional[str] = None
    taker_side: Optional[str] = None
    is_liquidation: Optional[bool] = None
    start_time: Optional[int] = None
    end_time: Optional[int] = None


@dataclass(frozen=True)
class MarketFilter:
    """Criteria for selecting markets."""

    market_id: Optional[str] = None
    market_name: Optional[str] = None
    market_symbol: Optional[str] = None


@dataclass(frozen=True)
class WalletFilter:
    """Criteria for selecting wallets."""

    user_id: Optional[str] = None
    asset: Optional[str] = None


@dataclass(frozen=True)
class FeeTreasuryFilter:
    """Criteria for selecting fee treasuries."""

    market_id: Optional[str] = None
    asset: Optional[str] = None


@dataclass(frozen=True)
class MarketStatFilter:
    """Criteria for selecting market statistics."""

    market_id: Optional[str] = None
    start_time: Optional[int] = None
    end_time: Optional[int] = None