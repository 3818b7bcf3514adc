# exchangedb

`exchangedb` stores the data of a spot exchange in SQLite: markets, orders,
user wallets, executed trades, 24-hour market statistics and fee treasuries.
Everything is reached through one `Repository` object
(`exchangedb.repository.Repository`). It uses only the Python standard library.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Getting started

```python
from decimal import Decimal

from exchangedb.connection import create_schema, establish_connection_pool, get_connection
from exchangedb.repository import Repository

pool = establish_connection_pool("exchange.db", 4)
with get_connection(pool) as connection:
    create_schema(connection)

repo = Repository(pool)
repo.deposit_balance("alice", "USDT", Decimal("1000"))
print(repo.get_wallet("alice", "USDT").available)   # 1000
```

## Connections (`exchangedb.connection`)

- `establish_connection_pool(database_url, pool_size)` returns a
  `ConnectionPool` of at most `pool_size` SQLite connections. The URL may be a
  file path, `sqlite:///path`, or `""`, `":memory:"`, `sqlite://` or
  `sqlite:///:memory:` for a private in-memory database that lives until the
  pool is closed. Any other `scheme://` raises `ValueError`.
- `get_connection(pool)` / `pool.connection()` is a context manager that checks
  a connection out. A thread that already holds one gets the same connection
  back, so nested repository calls share one transaction.
- `create_schema(connection)` creates the tables `markets`, `orders`,
  `trades`, `wallets`, `market_stats` and `fee_treasury` if they are missing.
- `pool.close()` (or using the pool in a `with` block) closes it.

Amounts are stored as exact decimal text and read back as `decimal.Decimal`.
Failures raise `RepositoryError`; a shortage of funds raises its subclass
`InsufficientBalanceError`. SQLite errors inside a repository call are raised
as `RepositoryError`, and the call's changes are rolled back.

## The repository

**Markets**: `create_market(market)`, `get_market(market_id)` (returns `None`
if absent), `list_markets()`.

**Wallets**:

- `deposit_balance(user_id, asset, amount)` adds to `available` and
  `total_deposited`, creating the wallet if needed.
- `withdraw_balance(user_id, asset, amount)` subtracts from `available` and
  adds to `total_withdrawn`; raises `RepositoryError` if the wallet does not
  exist and `InsufficientBalanceError` if too little is available.
- `lock_balance(user_id, asset, amount)` moves `amount` from `available` to
  `locked`.
- `unlock_balance(user_id, asset, amount)` adds `amount` to both `available`
  and `locked`.
- Both lock and unlock raise `InsufficientBalanceError` if either balance
  would go below zero.
- `get_wallet(user_id, asset)` returns `None` if absent.
- `list_wallets(filter, pagination)` returns at most 100 wallets (10 by
  default), ordered by `update_time`, `asset` or `user_id`, `asc` or `desc`
  (default `update_time desc`); any other ordering raises `ValueError`. The
  result never reports `has_more`.

**Orders**:

- `create_order(order)` locks the funds the order needs — the quote amount of
  the quote asset for a buy, the base amount of the base asset for a sell —
  and stores the order, all or nothing.
- `cancel_order(order_id)` cancels an order not yet `FILLED`, `CANCELED` or
  `REJECTED` and moves its remaining amount (`remained_quote` for a buy,
  `remained_base` for a sell) from `locked` back to `available`.
- `cancel_all_orders(market_id)` and `cancel_all_global_orders()` do the same
  for every `OPEN` or `PARTIALLY_FILLED` order in a market or everywhere.
- `update_order_status(order_id, status)` sets the status.
- `get_order(order_id)` raises `RepositoryError` if the order does not exist.
- `get_active_orders(market_id)` returns every `OPEN` order; the market id
  does not narrow the result.
- `list_orders(filter, pagination)` returns a page (10 by default) with
  `has_more` and `next_offset` set when more orders follow.

**Trades**:

- `execute_limit_trade(...)` settles a match between a buy and a sell order
  in one transaction. The seller's locked base and the buyer's locked quote
  pay for it; the buyer's fee (rate × base amount) and the seller's fee
  (rate × quote amount) are rounded to 8 significant digits; each side
  receives the other asset less its fee; both orders record the fill and
  become `FILLED` or `PARTIALLY_FILLED`; a filled buy order's unspent quote
  returns to the buyer's available balance; the fees are added to the
  market's fee treasuries for the two assets, where they exist. A self-trade
  raises `RepositoryError`, too little locked balance raises
  `InsufficientBalanceError`. The recorded trade's `timestamp` is in seconds.
- `list_trades(filter, pagination)` returns trades newest first, 10 by
  default; the page never reports `has_more`.

**Market statistics**: `upsert_market_stats(market_id, high_24h, low_24h,
volume_24h, price_change_24h, last_price)` creates or replaces them;
`get_market_stats(market_id)` returns `None` if absent.

**Fee treasury**: `create_fee_treasury(treasury)`,
`get_fee_treasury(market_id)`, `list_fee_treasuries()`, and
`transfer_to_fee_treasury(fee_amount)`, which sets the collected amount of
every treasury to `fee_amount` and returns the first one.

## Filters and pagination

`exchangedb.filters` holds frozen dataclasses (`OrderFilter`, `TradeFilter`,
`WalletFilter`, and also `MarketFilter`, `FeeTreasuryFilter`,
`MarketStatFilter`) whose fields default to `None`, meaning "no condition".
`TradeFilter.start_time` and `end_time` bound the trade timestamp inclusively.

`exchangedb.pagination.Pagination` has `limit`, `offset`, `order_by` and
`order_direction`, all unset by default so each query applies its own
defaults; `Pagination.standard()` gives limit 100, offset 0, `created_at`,
`desc`. Results come back as `Paginated` with `items`, `total_count`,
`next_offset` and `has_more`.

## Models and enumerations

`exchangedb.models` defines the records `Market`, `Order`, `Trade`, `Wallet`,
`MarketStat` and `FeeTreasury`, and the string enumerations `OrderType`,
`OrderSide`, `OrderStatus`, `TimeInForce`, `MarketRole` and `MarketStatus`.
All but `MarketStatus` have a `parse` class method that ignores case and
raises `ValueError` for an unknown value. `Order.get_order_type()`,
`get_side()` and `get_status()` parse the stored strings;
`Market.get_status()` accepts only `ACTIVE` or `CLOSED` exactly.

## Interfaces

`exchangedb.provider` defines abstract reader and writer interfaces per table
and the combined `ReadDatabaseProvider`, `WriteDatabaseProvider` and
`DatabaseProvider`, which any class deriving from all their parts satisfies —
`Repository` among them.

## Helpers

`exchangedb.utils` offers `generate_uuid_id`, `get_uuid_string`,
`get_utc_now_millis`, `with_prec(value, precision)` (round half to even to
that many significant digits), `is_zero`, `is_zero_with_precision`,
`bigdecimal_from_str` and `validate_positive_decimal`, which raise
`ValueError` for bad input.

## What it does not do

This package is storage only. It has no matching engine, no order book, no
network API or server and no command-line program; it does not create market
statistics from trades by itself. It works with SQLite only, and it does not
manage schema migrations beyond `create_schema`.