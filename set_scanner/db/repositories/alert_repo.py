"""
SQLite repository for price alerts (``price_alerts``, keyed by symbol).
"""

from __future__ import annotations

import sqlite3

from set_scanner.db.repositories.base import BaseRepository, to_iso
from set_scanner.models.alert import Alert
from set_scanner.utils.time_utils import utcnow


class SqliteAlertRepository(BaseRepository):
    """Read/write access to ``price_alerts``."""

    def list_alerts(self) -> list[Alert]:
        rows = self.fetchall("SELECT * FROM price_alerts ORDER BY symbol;")
        return [_row_to_alert(r) for r in rows]

    def upsert(self, alert: Alert) -> None:
        self.execute(
            """
            INSERT INTO price_alerts (symbol, target_price, condition, is_active, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(symbol) DO UPDATE SET
                target_price = excluded.target_price,
                condition    = excluded.condition,
                is_active    = excluded.is_active,
                updated_at   = excluded.updated_at;
            """,
            (
                alert.symbol,
                alert.target_price,
                alert.condition,
                int(alert.is_active),
                to_iso(utcnow()),
            ),
        )

    def delete(self, symbol: str) -> bool:
        cursor = self.execute(
            "DELETE FROM price_alerts WHERE symbol = ?;", (symbol.strip().upper(),)
        )
        return cursor.rowcount > 0


def _row_to_alert(row: sqlite3.Row) -> Alert:
    return Alert(
        symbol=row["symbol"],
        target_price=row["target_price"],
        condition=row["condition"],
        is_active=bool(row["is_active"]),
    )
