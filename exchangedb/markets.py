"""Storage of markets."""

from __future__ import annotations

from dataclasses import fields
from typing import List, Optional

from .connection import RepositoryBase, RepositoryError
from .models import Market
from .provider import MarketDatabaseReader, MarketDatabaseWriter

_COLUMNS = tuple(f.name for f in fields(Market))
_INSERT = (
    f"INSERT INTO markets ({', '.join(_COLUMNS)}) "
    f"VALUES ({', '.join('?' * len(_COLUMNS))})"
)


class MarketRepository(RepositoryBase, MarketDatabaseReader, MarketDatabaseWriter):
    """Reads and creates markets."""

    def get_market(self, market_id: str) -> Optional[Market]:
        """Return the market with the given id, or ``None``."""
        with self.get_conn() as conn:
            row = conn.execute("SELECT * FROM markets WHERE id = ?", (market_id,)).fetchone()
        return None if row is None else Market(**dict(row))

    def list_markets(self) -> List[Market]:
        """Return every market in insertion order."""
        with self.get_conn() as conn:
            rows = conn.execute("SELECT * FROM markets ORDER BY rowid").fetchall()
        return [Market(**dict(row)) for row in rows]

    def create_market(self, market_data: Market) -> Market:
        """Insert a market and return it as stored."""
        with self.get_conn() as conn:
            conn.execute(_INSERT, [getattr(market_data, name) for name in _COLUMNS])
            row = conn.execute(
                "SELECT * FROM markets WHERE id = ?", (market_data.id,)
            ).fetchone()
        if row is None:
            raise RepositoryError(f"Market {market_data.id} was not stored")
        return Market(**dict(row))