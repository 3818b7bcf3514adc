"""Settlement and listing of trades."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import fields
from decimal import MAX_EMAX, MAX_PREC, MIN_EMIN, Context, Decimal, localcontext
from typing import List, Optional, Tuple

from .connection import InsufficientBalanceError, RepositoryBase, RepositoryError
from .filters import TradeFilter
from .models import Order, OrderSide, OrderStatus, Trade, Wallet
from .pagination import Paginated, Pagination
from .provider import TradeDatabaseReader, TradeDatabaseWriter
from .utils import with_prec

log = logging.getLogger(__name__)

_PRECISION = 8
_DEFAULT_LIMIT = 10
_ZERO = Decimal(0)
# Sums and products of amounts are exact; rounding happens only through with_prec.
_EXACT = Context(prec=MAX_PREC, Emax=MAX_EMAX, Emin=MIN_EMIN)
_ACTIVE = (OrderStatus.OPEN.value, OrderStatus.PARTIALLY_FILLED.value)

_COLUMNS = tuple(f.name for f in fields(Trade))
_INSERT = (
    f"INSERT INTO trades ({', '.join(_COLUMNS)}) "
    f"VALUES ({', '.join('?' * len(_COLUMNS))})"
)
_EQUAL_FILTERS = (
    "market_id",
    "buyer_order_id",
    "seller_order_id",
    "buyer_user_id",
    "seller_user_id",
    "taker_side",
    "is_liquidation",
)


def _p(value: Decimal) -> Decimal:
    return with_prec(value, _PRECISION)


def _where(filter: TradeFilter) -> Tuple[str, list]:
    clauses: List[str] = []
    params: list = []
    for column in _EQUAL_FILTERS:
        value = getattr(filter, column)
        if value is not None:
            clauses.append(f"{column} = ?")
            params.append(value)
    if filter.start_time is not None:
        clauses.append("timestamp >= ?")
        params.append(filter.start_time)
    if filter.end_time is not None:
        clauses.append("timestamp <= ?")
        params.append(filter.end_time)
    return (" WHERE " + " AND ".join(clauses) if clauses else ""), params


def _fetch_wallet(conn, user_id: str, asset: str, message: str) -> Wallet:
    row = conn.execute(
        "SELECT * FROM wallets WHERE user_id = ? AND asset = ?", (user_id, asset)
    ).fetchone()
    if row is None:
        raise RepositoryError(message)
    return Wallet(**dict(row))


def _fetch_active_order(conn, order_id: str, message: str) -> Order:
    row = conn.execute(
        "SELECT * FROM orders WHERE id = ? AND status IN (?, ?)", (order_id, *_ACTIVE)
    ).fetchone()
    if row is None:
        raise RepositoryError(message)
    return Order(**dict(row))


def _apply_fill(
    conn,
    order: Order,
    base_amount: Decimal,
    quote_amount: Decimal,
    fee: Decimal,
    track_quote: bool,
) -> Tuple[OrderStatus, Optional[Decimal]]:
    """Record a fill on an order; return its new status and remaining quote."""
    filled_base = _p(order.filled_base) + _p(base_amount)
    filled_quote = _p(order.filled_quote) + _p(quote_amount)
    filled_fee = _p(_p(order.filled_fee) + fee)
    remained_base = _p(order.remained_base) - _p(base_amount)
    status = (
        OrderStatus.FILLED
        if _p(filled_base) >= _p(order.base_amount)
        else OrderStatus.PARTIALLY_FILLED
    )
    assignments = {
        "filled_base": _p(filled_base),
        "filled_quote": _p(filled_quote),
        "filled_fee": _p(filled_fee),
        "remained_base": _p(remained_base),
    }
    remained_quote: Optional[Decimal] = None
    if track_quote:
        remained_quote = _p(order.remained_quote) - _p(quote_amount)
        assignments["remained_quote"] = _p(remained_quote)
    assignments["status"] = status.value

    log.debug(
        "order %s: filled_base %s -> %s, filled_quote %s -> %s, filled_fee %s -> %s, "
        "remained_base %s -> %s, trade base=%s quote=%s fee=%s, status %s",
        order.id,
        order.filled_base,
        filled_base,
        order.filled_quote,
        filled_quote,
        order.filled_fee,
        filled_fee,
        order.remained_base,
        remained_base,
        base_amount,
        quote_amount,
        fee,
        status.value,
    )

    setters = ", ".join(f"{column} = ?" for column in assignments)
    conn.execute(
        f"UPDATE orders SET {setters} WHERE id = ?", (*assignments.values(), order.id)
    )
    return status, remained_quote


def _collect_fee(conn, market_id: str, asset: str, amount: Decimal) -> None:
    row = conn.execute(
        "SELECT collected_amount FROM fee_treasury WHERE market_id = ? AND asset = ?",
        (market_id, asset),
    ).fetchone()
    if row is not None:
        conn.execute(
            "UPDATE fee_treasury SET collected_amount = ? WHERE market_id = ? AND asset = ?",
            (row["collected_amount"] + amount, market_id, asset),
        )


class TradeRepository(RepositoryBase, TradeDatabaseReader, TradeDatabaseWriter):
    """Lists trades and settles matches between buy and sell orders."""

    def _trade_total_count(self, filter: TradeFilter) -> int:
        where, params = _where(filter)
        with self.get_conn() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM trades{where}", params).fetchone()[0]

    def list_trades(
        self, filter: TradeFilter, pagination: Optional[Pagination] = None
    ) -> Paginated[Trade]:
        """Return trades matching ``filter``, newest first, ten by default.

        The page is never reported as having more results.
        """
        pagination = pagination or Pagination()
        limit = pagination.limit if pagination.limit is not None else _DEFAULT_LIMIT
        offset = pagination.offset if pagination.offset is not None else 0
        total_count = self._trade_total_count(filter)
        where, params = _where(filter)
        with self.get_conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM trades{where} ORDER BY timestamp DESC, rowid "
                "LIMIT ? OFFSET ?",
                (*params, limit, offset),
            ).fetchall()
        items = [Trade(**dict(row)) for row in rows]
        has_more = len(items) > limit
        return Paginated(
            items=items,
            total_count=total_count,
            next_offset=offset + limit if has_more else None,
            has_more=has_more,
        )

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
        """Settle a match in one transaction and record the trade.

        The seller's locked base and the buyer's locked quote pay for the
        trade; each side receives the other asset less its fee, the fees go to
        the market's treasuries, and both orders record the fill. A filled buy
        order returns its unspent quote to the buyer's available balance.
        """
        if buyer_user_id == seller_user_id:
            raise RepositoryError("Buyer and seller cannot be the same user")
        price = Decimal(price)
        base_amount = Decimal(base_amount)
        quote_amount = Decimal(quote_amount)
        buyer_fee_rate = Decimal(buyer_fee_rate)
        seller_fee_rate = Decimal(seller_fee_rate)

        with self.get_conn() as conn, localcontext(_EXACT):
            seller_base = _fetch_wallet(
                conn, seller_user_id, base_asset, "Failed to fetch seller balance"
            )
            buyer_quote = _fetch_wallet(
                conn, buyer_user_id, quote_asset, "Failed to fetch buyer balance"
            )
            if seller_base.locked < base_amount:
                raise InsufficientBalanceError(
                    f"Insufficient frozen balance: seller {seller_user_id} has "
                    f"{seller_base.locked} {base_asset} frozen but needs {base_amount}"
                )
            if buyer_quote.locked < quote_amount:
                raise InsufficientBalanceError(
                    f"Insufficient frozen balance: buyer {buyer_user_id} has "
                    f"{buyer_quote.locked} {quote_asset} frozen but needs {quote_amount}"
                )

            # The buyer pays fees in base, the seller in quote.
            buyer_fee = _p(buyer_fee_rate * base_amount)
            seller_fee = _p(seller_fee_rate * quote_amount)

            seller_order = _fetch_active_order(
                conn, seller_order_id, "Failed to fetch seller order"
            )
            _apply_fill(conn, seller_order, base_amount, quote_amount, seller_fee, False)

            buyer_order = _fetch_active_order(
                conn, buyer_order_id, "Failed to fetch buyer order"
            )
            buyer_status, buyer_remained_quote = _apply_fill(
                conn, buyer_order, base_amount, quote_amount, buyer_fee, True
            )
            residue = (
                buyer_remained_quote
                if buyer_status is OrderStatus.FILLED and buyer_remained_quote is not None
                else _ZERO
            )

            conn.execute(
                "UPDATE wallets SET locked = ? WHERE user_id = ? AND asset = ?",
                (_p(seller_base.locked) - _p(base_amount), seller_user_id, base_asset),
            )
            conn.execute(
                "UPDATE wallets SET locked = ?, available = ? WHERE user_id = ? AND asset = ?",
                (
                    _p(buyer_quote.locked) - _p(quote_amount) - _p(residue),
                    _p(buyer_quote.available) + _p(residue),
                    buyer_user_id,
                    quote_asset,
                ),
            )

            seller_quote = _fetch_wallet(
                conn, seller_user_id, quote_asset, "Failed to fetch seller quote balance"
            )
            buyer_base = _fetch_wallet(
                conn, buyer_user_id, base_asset, "Failed to fetch buyer base balance"
            )

            seller_receives = _p(quote_amount - seller_fee)
            conn.execute(
                "UPDATE wallets SET available = ? WHERE user_id = ? AND asset = ?",
                (seller_quote.available + seller_receives, seller_user_id, quote_asset),
            )
            buyer_receives = _p(base_amount - buyer_fee)
            conn.execute(
                "UPDATE wallets SET available = ? WHERE user_id = ? AND asset = ?",
                (buyer_base.available + buyer_receives, buyer_user_id, base_asset),
            )

            _collect_fee(conn, market_id, quote_asset, seller_fee)
            _collect_fee(conn, market_id, base_asset, buyer_fee)

            trade = Trade(
                id=str(uuid.uuid4()),
                timestamp=int(time.time()),
                market_id=market_id,
                price=price,
                base_amount=base_amount,
                quote_amount=quote_amount,
                buyer_user_id=buyer_user_id,
                buyer_order_id=buyer_order_id,
                buyer_fee=buyer_fee,
                seller_user_id=seller_user_id,
                seller_order_id=seller_order_id,
                seller_fee=seller_fee,
                taker_side=(OrderSide.BUY if is_buyer_taker else OrderSide.SELL).value,
                is_liquidation=None,
            )
            conn.execute(_INSERT, [getattr(trade, name) for name in _COLUMNS])
        return trade