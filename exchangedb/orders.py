"""Storage of orders, with the balance locking their lifecycle needs."""

from __future__ import annotations

from dataclasses import fields
from typing import List, Optional, Tuple

from .connection import RepositoryError
from .filters import OrderFilter
from .models import Market, Order, OrderSide, OrderStatus
from .pagination import Paginated, Pagination
from .provider import OrderDatabaseReader, OrderDatabaseWriter
from .utils import get_utc_now_millis
from .wallets import WalletRepository

_COLUMNS = tuple(f.name for f in fields(Order))
_INSERT = (
    f"INSERT INTO orders ({', '.join(_COLUMNS)}) "
    f"VALUES ({', '.join('?' * len(_COLUMNS))})"
)
_ACTIVE = (OrderStatus.OPEN.value, OrderStatus.PARTIALLY_FILLED.value)
_FINAL = frozenset({OrderStatus.FILLED, OrderStatus.CANCELED, OrderStatus.REJECTED})
_FILTER_COLUMNS = (
    ("order_id", "id"),
    ("market_id", "market_id"),
    ("user_id", "user_id"),
    ("status", "status"),
    ("side", "side"),
    ("order_type", "order_type"),
)
_DEFAULT_LIMIT = 10


def _where(filter: OrderFilter) -> Tuple[str, List[str]]:
    clauses: List[str] = []
    params: List[str] = []
    for attr, column in _FILTER_COLUMNS:
        value = getattr(filter, attr)
        if value is not None:
            clauses.append(f"{column} = ?")
            params.append(value)
    return (" WHERE " + " AND ".join(clauses) if clauses else ""), params


def _fetch_order(conn, order_id: str) -> Optional[Order]:
    row = conn.execute("SELECT * FROM orders WHERE id = ?", (order_id,)).fetchone()
    return None if row is None else Order(**dict(row))


def _fetch_market(conn, market_id: str) -> Optional[Market]:
    row = conn.execute("SELECT * FROM markets WHERE id = ?", (market_id,)).fetchone()
    return None if row is None else Market(**dict(row))


def _parse_side(text: str, message: str) -> OrderSide:
    try:
        return OrderSide.parse(text)
    except ValueError as exc:
        raise RepositoryError(f"{message}: {exc}") from exc


class OrderRepository(WalletRepository, OrderDatabaseReader, OrderDatabaseWriter):
    """Reads, places and cancels orders, locking and unlocking their funds."""

    def _order_total_count(self, filter: OrderFilter) -> int:
        where, params = _where(filter)
        with self.get_conn() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM orders{where}", params).fetchone()[0]

    def _cancel(self, conn, order: Order, market: Market) -> Order:
        side = _parse_side(order.side, "Failed to parse order side")
        if side is OrderSide.BUY:
            asset, unlock_amount = market.quote_asset, order.remained_quote
        else:
            asset, unlock_amount = market.base_asset, order.remained_base

        conn.execute(
            "UPDATE orders SET status = ?, update_time = ? WHERE id = ?",
            (OrderStatus.CANCELED.value, get_utc_now_millis(), order.id),
        )
        canceled = _fetch_order(conn, order.id)
        if canceled is None:
            raise RepositoryError("Failed to update order status")

        wallet = conn.execute(
            "SELECT available, locked FROM wallets WHERE user_id = ? AND asset = ?",
            (order.user_id, asset),
        ).fetchone()
        if wallet is not None:
            conn.execute(
                "UPDATE wallets SET available = ?, locked = ? WHERE user_id = ? AND asset = ?",
                (
                    wallet["available"] + unlock_amount,
                    wallet["locked"] - unlock_amount,
                    order.user_id,
                    asset,
                ),
            )
        return canceled

    def _active_orders(self, conn, market_id: Optional[str] = None) -> List[Order]:
        sql = "SELECT * FROM orders WHERE status IN (?, ?)"
        params: List[str] = list(_ACTIVE)
        if market_id is not None:
            sql += " AND market_id = ?"
            params.append(market_id)
        rows = conn.execute(sql + " ORDER BY rowid", params).fetchall()
        return [Order(**dict(row)) for row in rows]

    def get_order(self, order_id: str) -> Optional[Order]:
        """Return the order with the given id; raise ``RepositoryError`` if absent."""
        with self.get_conn() as conn:
            order = _fetch_order(conn, order_id)
        if order is None:
            raise RepositoryError("Order not found")
        return order

    def get_active_orders(self, market_id: str) -> List[Order]:
        """Return every order with status OPEN; the market id does not narrow it."""
        with self.get_conn() as conn:
            rows = conn.execute(
                "SELECT * FROM orders WHERE status = ? ORDER BY rowid",
                (OrderStatus.OPEN.value,),
            ).fetchall()
        return [Order(**dict(row)) for row in rows]

    def list_orders(
        self, filter: OrderFilter, pagination: Optional[Pagination] = None
    ) -> Paginated[Order]:
        """Return one page of orders matching ``filter`` (ten by default)."""
        pagination = pagination or Pagination()
        limit = pagination.limit if pagination.limit is not None else _DEFAULT_LIMIT
        offset = pagination.offset if pagination.offset is not None else 0
        total_count = self._order_total_count(filter)
        where, params = _where(filter)
        with self.get_conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM orders{where} ORDER BY rowid LIMIT ? OFFSET ?",
                (*params, limit + 1, offset),
            ).fetchall()
        items = [Order(**dict(row)) for row in rows]
        has_more = len(items) > limit
        if has_more:
            items.pop()
        return Paginated(
            items=items,
            total_count=total_count,
            next_offset=offset + limit if has_more else None,
            has_more=has_more,
        )

    def create_order(self, order_data: Order) -> Order:
        """Lock the funds the order needs and store it, all or nothing.

        A buy order locks its quote amount of the quote asset, a sell order its
        base amount of the base asset.
        """
        with self.get_conn() as conn:
            market = _fetch_market(conn, order_data.market_id)
            if market is None:
                raise RepositoryError("Failed to fetch market")
            side = _parse_side(order_data.side, "Invalid order side")
            if side is OrderSide.BUY:
                asset, amount = market.quote_asset, order_data.quote_amount
                message = "Failed to update buyer balance"
            else:
                asset, amount = market.base_asset, order_data.base_amount
                message = "Failed to update seller balance"
            try:
                self.lock_balance(order_data.user_id, asset, amount)
            except RepositoryError as exc:
                raise type(exc)(f"{message}: {exc}") from exc

            conn.execute(_INSERT, [getattr(order_data, name) for name in _COLUMNS])
            stored = _fetch_order(conn, order_data.id)
        if stored is None:
            raise RepositoryError(f"Order {order_data.id} was not stored")
        return stored

    def cancel_order(self, order_id: str) -> Order:
        """Cancel an order that is not final and unlock its remaining funds."""
        with self.get_conn() as conn:
            order = _fetch_order(conn, order_id)
            if order is None:
                raise RepositoryError("Order not found")
            try:
                status = OrderStatus.parse(order.status)
            except ValueError as exc:
                raise RepositoryError(f"Failed to parse order status: {exc}") from exc
            if status in _FINAL:
                raise RepositoryError("Order already in final state")
            _parse_side(order.side, "Failed to parse order side")
            market = _fetch_market(conn, order.market_id)
            if market is None:
                raise RepositoryError("Market not found")
            return self._cancel(conn, order, market)

    def cancel_all_orders(self, market_id: str) -> List[Order]:
        """Cancel every open or partially filled order in a market."""
        with self.get_conn() as conn:
            active = self._active_orders(conn, market_id)
            market = _fetch_market(conn, market_id)
            if market is None:
                raise RepositoryError("Market not found")
            return [self._cancel(conn, order, market) for order in active]

    def cancel_all_global_orders(self) -> List[Order]:
        """Cancel every open or partially filled order in every market."""
        with self.get_conn() as conn:
            canceled = []
            for order in self._active_orders(conn):
                _parse_side(order.side, "Failed to parse order side")
                market = _fetch_market(conn, order.market_id)
                if market is None:
                    raise RepositoryError("Market not found")
                canceled.append(self._cancel(conn, order, market))
            return canceled

    def update_order_status(self, order_id: str, status: OrderStatus) -> Order:
        """Set the status of an order and return it."""
        value = OrderStatus(status).value
        with self.get_conn() as conn:
            conn.execute("UPDATE orders SET status = ? WHERE id = ?", (value, order_id))
            order = _fetch_order(conn, order_id)
        if order is None:
            raise RepositoryError("Failed to update order status")
        return order