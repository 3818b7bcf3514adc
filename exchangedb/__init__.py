"""SQLite storage for a spot exchange: markets, orders, wallets, trades, statistics and fees."""

__version__ = "0.1.0"