"""Storage of collected trading fees."""

from __future__ import annotations

from dataclasses import fields
from decimal import Decimal
from typing import List, Optional

from .connection import RepositoryBase, RepositoryError
from .models import FeeTreasury
from .provider import FeeTreasuryDatabaseReader, FeeTreasuryDatabaseWriter
from .utils import get_utc_now_millis

_COLUMNS = tuple(f.name for f in fields(FeeTreasury))
_INSERT = (
    f"INSERT INTO fee_treasury ({', '.join(_COLUMNS)}) "
    f"VALUES ({', '.join('?' * len(_COLUMNS))})"
)


class FeeTreasuryRepository(
    RepositoryBase, FeeTreasuryDatabaseReader, FeeTreasuryDatabaseWriter
):
    """Reads and updates fee treasuries."""

    def get_fee_treasury(self, market_id: str) -> Optional[FeeTreasury]:
        """Return the first treasury of a market, or ``None``."""
        with self.get_conn() as conn:
            row = conn.execute(
                "SELECT * FROM fee_treasury WHERE market_id = ? ORDER BY rowid LIMIT 1",
                (market_id,),
            ).fetchone()
        return None if row is None else FeeTreasury(**dict(row))

    def list_fee_treasuries(self) -> List[FeeTreasury]:
        """Return every treasury in insertion order."""
        with self.get_conn() as conn:
            rows = conn.execute("SELECT * FROM fee_treasury ORDER BY rowid").fetchall()
        return [FeeTreasury(**dict(row)) for row in rows]

    def create_fee_treasury(self, fee_treasury_data: FeeTreasury) -> FeeTreasury:
        """Insert a treasury and return it as stored."""
        with self.get_conn() as conn:
            conn.execute(_INSERT, [getattr(fee_treasury_data, name) for name in _COLUMNS])
            row = conn.execute(
                "SELECT * FROM fee_treasury WHERE market_id = ? AND asset = ?",
                (fee_treasury_data.market_id, fee_treasury_data.asset),
            ).fetchone()
        if row is None:
            raise RepositoryError("Fee treasury was not stored")
        return FeeTreasury(**dict(row))

    def transfer_to_fee_treasury(self, fee_amount: Decimal) -> FeeTreasury:
        """Set the collected amount of every treasury and return the first one.

        Raises ``RepositoryError`` when there is no treasury at all.
        """
        with self.get_conn() as conn:
            conn.execute(
                "UPDATE fee_treasury SET collected_amount = ?, last_update_time = ?",
                (fee_amount, get_utc_now_millis()),
            )
            row = conn.execute(
                "SELECT * FROM fee_treasury ORDER BY rowid LIMIT 1"
            ).fetchone()
        if row is None:
            raise RepositoryError("Record not found")
        return FeeTreasury(**dict(row))