"""Storage of rolling market statistics."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from .connection import RepositoryBase, RepositoryError
from .models import MarketStat
from .provider import MarketStatDatabaseReader, MarketStatDatabaseWriter
from .utils import get_utc_now_millis

_SELECT = "SELECT * FROM market_stats WHERE market_id = ?"


class MarketStatRepository(
    RepositoryBase, MarketStatDatabaseReader, MarketStatDatabaseWriter
):
    """Reads and writes per-market 24-hour statistics."""

    def get_market_stats(self, market_id: str) -> Optional[MarketStat]:
        """Return the statistics of a market, or ``None``."""
        with self.get_conn() as conn:
            row = conn.execute(_SELECT, (market_id,)).fetchone()
        return None if row is None else MarketStat(**dict(row))

    def upsert_market_stats(
        self,
        market_id: str,
        high_24h: Decimal,
        low_24h: Decimal,
        volume_24h: Decimal,
        price_change_24h: Decimal,
        last_price: Decimal,
    ) -> MarketStat:
        """Replace a market's statistics, creating them if absent."""
        current_time = get_utc_now_millis()
        values = (high_24h, low_24h, volume_24h, price_change_24h, last_price, current_time)
        with self.get_conn() as conn:
            exists = conn.execute(_SELECT, (market_id,)).fetchone() is not None
            if exists:
                conn.execute(
                    "UPDATE market_stats SET high_24h = ?, low_24h = ?, volume_24h = ?, "
                    "price_change_24h = ?, last_price = ?, last_update_time = ? "
                    "WHERE market_id = ?",
                    (*values, market_id),
                )
            else:
                conn.execute(
                    "INSERT INTO market_stats (market_id, high_24h, low_24h, volume_24h, "
                    "price_change_24h, last_price, last_update_time) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (market_id, *values),
                )
            row = conn.execute(_SELECT, (market_id,)).fetchone()
        if row is None:
            raise RepositoryError(f"Market stats for {market_id} were not stored")
        return MarketStat(**dict(row))