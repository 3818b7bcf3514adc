"""SQLite connection pooling, the table schema and the repository base class.

Numeric amounts are stored as exact decimal text and come back as
``decimal.Decimal``; boolean columns come back as ``bool``. Because amounts
are stored as text, arithmetic and comparisons on them belong in Python,
not in SQL.
"""

from __future__ import annotations

import itertools
import sqlite3
import threading
import time
import uuid
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterator, List, Optional, Tuple

DEFAULT_TIMEOUT = 30.0

sqlite3.register_adapter(Decimal, str)
sqlite3.register_converter("DECIMAL_TEXT", lambda raw: Decimal(raw.decode("ascii")))
sqlite3.register_converter("BOOLEAN", lambda raw: bool(int(raw)))

_MEMORY_URLS = {"", ":memory:", "sqlite://", "sqlite:///:memory:", "sqlite://:memory:"}
_savepoint_names = itertools.count(1)

_SCHEMA: Tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS fee_treasury (
        market_id VARCHAR(36) NOT NULL CHECK (length(market_id) <= 36),
        asset VARCHAR(20) NOT NULL CHECK (length(asset) <= 20),
        treasury_address VARCHAR(100) NOT NULL CHECK (length(treasury_address) <= 100),
        collected_amount DECIMAL_TEXT NOT NULL,
        last_update_time BIGINT NOT NULL,
        PRIMARY KEY (market_id, asset)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS market_stats (
        market_id VARCHAR(36) NOT NULL PRIMARY KEY CHECK (length(market_id) <= 36),
        high_24h DECIMAL_TEXT NOT NULL,
        low_24h DECIMAL_TEXT NOT NULL,
        volume_24h DECIMAL_TEXT NOT NULL,
        price_change_24h DECIMAL_TEXT NOT NULL,
        last_price DECIMAL_TEXT NOT NULL,
        last_update_time BIGINT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS markets (
        id VARCHAR(36) NOT NULL PRIMARY KEY CHECK (length(id) <= 36),
        base_asset VARCHAR(20) NOT NULL CHECK (length(base_asset) <= 20),
        quote_asset VARCHAR(20) NOT NULL CHECK (length(quote_asset) <= 20),
        default_maker_fee DECIMAL_TEXT NOT NULL,
        default_taker_fee DECIMAL_TEXT NOT NULL,
        create_time BIGINT NOT NULL,
        update_time BIGINT NOT NULL,
        status VARCHAR(20) NOT NULL CHECK (length(status) <= 20),
        min_base_amount DECIMAL_TEXT NOT NULL,
        min_quote_amount DECIMAL_TEXT NOT NULL,
        price_precision INTEGER NOT NULL,
        amount_precision INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS orders (
        id VARCHAR(36) NOT NULL PRIMARY KEY CHECK (length(id) <= 36),
        market_id VARCHAR(36) NOT NULL CHECK (length(market_id) <= 36),
        user_id VARCHAR(36) NOT NULL CHECK (length(user_id) <= 36),
        order_type VARCHAR(20) NOT NULL CHECK (length(order_type) <= 20),
        side VARCHAR(10) NOT NULL CHECK (length(side) <= 10),
        price DECIMAL_TEXT NOT NULL,
        base_amount DECIMAL_TEXT NOT NULL,
        quote_amount DECIMAL_TEXT NOT NULL,
        maker_fee DECIMAL_TEXT NOT NULL,
        taker_fee DECIMAL_TEXT NOT NULL,
        create_time BIGINT NOT NULL,
        remained_base DECIMAL_TEXT NOT NULL,
        remained_quote DECIMAL_TEXT NOT NULL,
        filled_base DECIMAL_TEXT NOT NULL,
        filled_quote DECIMAL_TEXT NOT NULL,
        filled_fee DECIMAL_TEXT NOT NULL,
        update_time BIGINT NOT NULL,
        status VARCHAR(20) NOT NULL CHECK (length(status) <= 20),
        client_order_id VARCHAR(50) CHECK (length(client_order_id) <= 50),
        post_only BOOLEAN,
        time_in_force VARCHAR(10) CHECK (length(time_in_force) <= 10),
        expires_at BIGINT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS trades (
        id VARCHAR(36) NOT NULL PRIMARY KEY CHECK (length(id) <= 36),
        timestamp BIGINT NOT NULL,
        market_id VARCHAR(36) NOT NULL CHECK (length(market_id) <= 36),
        price DECIMAL_TEXT NOT NULL,
        base_amount DECIMAL_TEXT NOT NULL,
        quote_amount DECIMAL_TEXT NOT NULL,
        buyer_user_id VARCHAR(36) NOT NULL CHECK (length(buyer_user_id) <= 36),
        buyer_order_id VARCHAR(36) NOT NULL CHECK (length(buyer_order_id) <= 36),
        buyer_fee DECIMAL_TEXT NOT NULL,
        seller_user_id VARCHAR(36) NOT NULL CHECK (length(seller_user_id) <= 36),
        seller_order_id VARCHAR(36) NOT NULL CHECK (length(seller_order_id) <= 36),
        seller_fee DECIMAL_TEXT NOT NULL,
        taker_side VARCHAR(10) NOT NULL CHECK (length(taker_side) <= 10),
        is_liquidation BOOLEAN
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS wallets (
        user_id VARCHAR(36) NOT NULL CHECK (length(user_id) <= 36),
        asset VARCHAR(20) NOT NULL CHECK (length(asset) <= 20),
        available DECIMAL_TEXT NOT NULL,
        locked DECIMAL_TEXT NOT NULL,
        update_time BIGINT NOT NULL,
        reserved DECIMAL_TEXT NOT NULL,
        total_deposited DECIMAL_TEXT NOT NULL,
        total_withdrawn DECIMAL_TEXT NOT NULL,
        PRIMARY KEY (user_id, asset)
    )
    """,
)


class RepositoryError(Exception):
    """A database operation failed."""


class InsufficientBalanceError(RepositoryError):
    """A wallet does not hold enough funds for the operation."""


def _resolve_url(database_url: str) -> Tuple[str, bool, bool]:
    """Return the connect target, whether it is a URI, and whether it is in memory."""
    url = database_url.strip()
    if url in _MEMORY_URLS:
        return f"file:exchangedb-{uuid.uuid4().hex}?mode=memory&cache=shared", True, True
    if url.startswith("sqlite:///"):
        return url[len("sqlite:///"):], False, False
    if "://" in url:
        raise ValueError(f"Unsupported database URL: {database_url}")
    return url, False, False


class ConnectionPool:
    """A bounded pool of SQLite connections.

    A thread that already holds a connection gets the same one back when it
    asks again, so nested operations share one connection and transaction.
    """

    def __init__(
        self, database_url: str, pool_size: int, timeout: float = DEFAULT_TIMEOUT
    ) -> None:
        if pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        self._target, self._uri, memory = _resolve_url(database_url)
        self._size = pool_size
        self._timeout = timeout
        self._idle: List[sqlite3.Connection] = []
        self._created = 0
        self._closed = False
        self._cond = threading.Condition()
        self._local = threading.local()
        # An in-memory database lives only while a connection to it is open.
        self._anchor: Optional[sqlite3.Connection] = self._open() if memory else None

    @property
    def max_size(self) -> int:
        """Maximum number of connections handed out at once."""
        return self._size

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self._target,
            uri=self._uri,
            detect_types=sqlite3.PARSE_DECLTYPES,
            isolation_level=None,
            check_same_thread=False,
            timeout=self._timeout,
        )
        conn.row_factory = sqlite3.Row
        return conn

    def _acquire(self) -> sqlite3.Connection:
        deadline = time.monotonic() + self._timeout
        with self._cond:
            while True:
                if self._closed:
                    raise RepositoryError("Connection pool is closed")
                if self._idle:
                    return self._idle.pop()
                if self._created < self._size:
                    self._created += 1
                    break
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise RepositoryError("Timed out waiting for a database connection")
                self._cond.wait(remaining)
        try:
            return self._open()
        except sqlite3.Error as exc:
            with self._cond:
                self._created -= 1
                self._cond.notify()
            raise RepositoryError(f"Failed to open a database connection: {exc}") from exc

    def _release(self, conn: sqlite3.Connection) -> None:
        if conn.in_transaction:
            conn.rollback()
        with self._cond:
            if self._closed:
                conn.close()
                self._created -= 1
            else:
                self._idle.append(conn)
            self._cond.notify()

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Check a connection out of the pool for the duration of the block."""
        held = getattr(self._local, "conn", None)
        if held is not None:
            yield held
            return
        conn = self._acquire()
        self._local.conn = conn
        try:
            yield conn
        finally:
            self._local.conn = None
            self._release(conn)

    def close(self) -> None:
        """Close idle connections and refuse further checkouts."""
        with self._cond:
            self._closed = True
            for conn in self._idle:
                conn.close()
            self._created -= len(self._idle)
            self._idle.clear()
            self._cond.notify_all()
        if self._anchor is not None:
            self._anchor.close()
            self._anchor = None

    def __enter__(self) -> "ConnectionPool":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def establish_connection_pool(database_url: str, pool_size: int) -> ConnectionPool:
    """Create a connection pool holding at most ``pool_size`` connections."""
    return ConnectionPool(database_url, pool_size)


def get_connection(pool: ConnectionPool):
    """Return a context manager that checks a connection out of ``pool``."""
    return pool.connection()


def create_schema(connection: sqlite3.Connection) -> None:
    """Create every table the repositories use, if it does not exist yet."""
    for statement in _SCHEMA:
        connection.execute(statement)


class RepositoryBase:
    """Holds the pool and opens transactional connections for repositories."""

    def __init__(self, pool: ConnectionPool) -> None:
        self.pool = pool

    @contextmanager
    def get_conn(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside a transaction.

        The block's work is committed when it ends normally and rolled back
        when it raises. Nested blocks on the same thread form savepoints.
        SQLite errors are raised as ``RepositoryError``.
        """
        with self.pool.connection() as conn:
            name = f"sp_{next(_savepoint_names)}"
            try:
                conn.execute(f"SAVEPOINT {name}")
            except sqlite3.Error as exc:
                raise RepositoryError(str(exc)) from exc
            try:
                yield conn
            except BaseException as exc:
                try:
                    conn.execute(f"ROLLBACK TO {name}")
                    conn.execute(f"RELEASE {name}")
                except sqlite3.Error:
                    pass
                if isinstance(exc, sqlite3.Error):
                    raise RepositoryError(str(exc)) from exc
                raise
            else:
                try:
                    conn.execute(f"RELEASE {name}")
                except sqlite3.Error as exc:
                    raise RepositoryError(str(exc)) from exc