"""Storage of user balances."""

from __future__ import annotations

from dataclasses import fields
from decimal import Decimal
from typing import List, Optional, Tuple

from .connection import InsufficientBalanceError, RepositoryBase, RepositoryError
from .filters import WalletFilter
from .models import Wallet
from .pagination import Paginated, Pagination
from .provider import WalletDatabaseReader, WalletDatabaseWriter
from .utils import get_utc_now_millis

_COLUMNS = tuple(f.name for f in fields(Wallet))
_INSERT = (
    f"INSERT INTO wallets ({', '.join(_COLUMNS)}) "
    f"VALUES ({', '.join('?' * len(_COLUMNS))})"
)
_SELECT = "SELECT * FROM wallets WHERE user_id = ? AND asset = ?"
_ORDER_COLUMNS = frozenset({"update_time", "asset", "user_id"})
_DIRECTIONS = frozenset({"asc", "desc"})
_DEFAULT_LIMIT = 10
_MAX_LIMIT = 100
_ZERO = Decimal(0)


def _where(filter: WalletFilter) -> Tuple[str, List[str]]:
    clauses: List[str] = []
    params: List[str] = []
    for column in ("user_id", "asset"):
        value = getattr(filter, column)
        if value is not None:
            clauses.append(f"{column} = ?")
            params.append(value)
    return (" WHERE " + " AND ".join(clauses) if clauses else ""), params


class WalletRepository(RepositoryBase, WalletDatabaseReader, WalletDatabaseWriter):
    """Reads wallets and moves funds between their balances."""

    def _fetch(self, conn, user_id: str, asset: str) -> Optional[Wallet]:
        row = conn.execute(_SELECT, (user_id, asset)).fetchone()
        return None if row is None else Wallet(**dict(row))

    def _stored(self, conn, user_id: str, asset: str) -> Wallet:
        wallet = self._fetch(conn, user_id, asset)
        if wallet is None:
            raise RepositoryError(f"Wallet {user_id}/{asset} was not stored")
        return wallet

    def _wallet_total_count(self, filter: WalletFilter) -> int:
        where, params = _where(filter)
        with self.get_conn() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM wallets{where}", params).fetchone()[0]

    def _update_or_create_balance(
        self,
        user_id: str,
        asset: str,
        available_delta: Decimal,
        locked_delta: Decimal,
    ) -> Wallet:
        current_time = get_utc_now_millis()
        with self.get_conn() as conn:
            wallet = self._fetch(conn, user_id, asset)
            if wallet is not None:
                new_available = wallet.available + available_delta
                new_locked = wallet.locked + locked_delta
                if new_available < _ZERO or new_locked < _ZERO:
                    raise InsufficientBalanceError("Insufficient balance")
                conn.execute(
                    "UPDATE wallets SET available = ?, locked = ?, update_time = ? "
                    "WHERE user_id = ? AND asset = ?",
                    (new_available, new_locked, current_time, user_id, asset),
                )
            else:
                if available_delta < _ZERO or locked_delta < _ZERO:
                    raise InsufficientBalanceError("Insufficient balance")
                new_wallet = Wallet(
                    user_id=user_id,
                    asset=asset,
                    available=available_delta,
                    locked=locked_delta,
                    update_time=current_time,
                    reserved=_ZERO,
                    total_deposited=_ZERO,
                    total_withdrawn=_ZERO,
                )
                conn.execute(_INSERT, [getattr(new_wallet, name) for name in _COLUMNS])
            return self._stored(conn, user_id, asset)

    def get_wallet(self, user_id: str, asset: str) -> Optional[Wallet]:
        """Return a user's wallet for an asset, or ``None``."""
        with self.get_conn() as conn:
            return self._fetch(conn, user_id, asset)

    def list_wallets(
        self, filter: WalletFilter, pagination: Optional[Pagination] = None
    ) -> Paginated[Wallet]:
        """Return wallets matching ``filter``, ordered and limited to at most 100.

        Ordering may be by ``update_time``, ``asset`` or ``user_id``, ``asc`` or
        ``desc``; anything else raises ``ValueError``.
        """
        pagination = pagination or Pagination()
        limit = min(
            pagination.limit if pagination.limit is not None else _DEFAULT_LIMIT,
            _MAX_LIMIT,
        )
        offset = pagination.offset if pagination.offset is not None else 0
        order_by = pagination.order_by if pagination.order_by is not None else "update_time"
        direction = (
            pagination.order_direction if pagination.order_direction is not None else "desc"
        ).lower()
        if order_by not in _ORDER_COLUMNS or direction not in _DIRECTIONS:
            raise ValueError(
                f"Invalid order parameters: field '{order_by}' or direction '{direction}'"
            )

        total = self._wallet_total_count(filter)
        where, params = _where(filter)
        with self.get_conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM wallets{where} "
                f"ORDER BY {order_by} {direction.upper()}, rowid LIMIT ? OFFSET ?",
                (*params, limit, offset),
            ).fetchall()
        return Paginated(
            items=[Wallet(**dict(row)) for row in rows],
            total_count=total,
            next_offset=None,
            has_more=False,
        )

    def lock_balance(self, user_id: str, asset: str, amount: Decimal) -> Wallet:
        """Move ``amount`` from available to locked."""
        return self._update_or_create_balance(user_id, asset, -amount, amount)

    def unlock_balance(self, user_id: str, asset: str, amount: Decimal) -> Wallet:
        """Add ``amount`` to both the available and the locked balance."""
        return self._update_or_create_balance(user_id, asset, amount, amount)

    def deposit_balance(self, user_id: str, asset: str, amount: Decimal) -> Wallet:
        """Credit ``amount`` to the available balance, creating the wallet if needed."""
        current_time = get_utc_now_millis()
        with self.get_conn() as conn:
            wallet = self._fetch(conn, user_id, asset)
            if wallet is not None:
                conn.execute(
                    "UPDATE wallets SET available = ?, total_deposited = ?, update_time = ? "
                    "WHERE user_id = ? AND asset = ?",
                    (
                        wallet.available + amount,
                        wallet.total_deposited + amount,
                        current_time,
                        user_id,
                        asset,
                    ),
                )
            else:
                new_wallet = Wallet(
                    user_id=user_id,
                    asset=asset,
                    available=amount,
                    locked=_ZERO,
                    update_time=current_time,
                    reserved=_ZERO,
                    total_deposited=amount,
                    total_withdrawn=_ZERO,
                )
                conn.execute(_INSERT, [getattr(new_wallet, name) for name in _COLUMNS])
            return self._stored(conn, user_id, asset)

    def withdraw_balance(self, user_id: str, asset: str, amount: Decimal) -> Wallet:
        """Debit ``amount`` from the available balance.

        Raises ``RepositoryError`` when the wallet does not exist and
        ``InsufficientBalanceError`` when too little is available.
        """
        current_time = get_utc_now_millis()
        with self.get_conn() as conn:
            wallet = self._fetch(conn, user_id, asset)
            if wallet is None:
                raise RepositoryError("Balance not found")
            if wallet.available < amount:
                raise InsufficientBalanceError("Insufficient balance")
            conn.execute(
                "UPDATE wallets SET available = ?, total_withdrawn = ?, update_time = ? "
                "WHERE user_id = ? AND asset = ?",
                (
                    wallet.available - amount,
                    wallet.total_withdrawn + amount,
                    current_time,
                    user_id,
                    asset,
                ),
            )
            return self._stored(conn, user_id, asset)