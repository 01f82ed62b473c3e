"""
SQLite repository for the paper-trading ledger (``ledger_records``).
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Iterable

from set_scanner.db.repositories.base import BaseRepository, from_iso, to_iso
from set_scanner.models.ledger import LedgerRecord, LedgerStatus

logger = logging.getLogger(__name__)

_UPSERT_SQL = """
INSERT INTO ledger_records (
    record_id, symbol, entry_date, recommendation_price, entry_price,
    target_price, stop_loss, status, exit_price, exit_date, percent_change
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(record_id) DO UPDATE SET
    status         = excluded.status,
    exit_price     = excluded.exit_price,
    exit_date      = excluded.exit_date,
    percent_change = excluded.percent_change;
"""


class SqliteLedgerRepository(BaseRepository):
    """Read/write access to ``ledger_records``.

    Price levels and ``entry_date`` are written once; an upsert of an
    existing id only updates the outcome columns.
    """

    def list_records(self) -> list[LedgerRecord]:
        rows = self.fetchall(
            "SELECT * FROM ledger_records ORDER BY entry_date DESC, created_at DESC;"
        )
        return [_row_to_record(r) for r in rows]

    def upsert(self, record: LedgerRecord) -> None:
        self.execute(_UPSERT_SQL, _record_params(record))

    def upsert_many(self, records: Iterable[LedgerRecord]) -> None:
        for record in records:
            self.upsert(record)

    def delete_all(self) -> int:
        cursor = self.execute("DELETE FROM ledger_records;")
        logger.info("Deleted %d ledger records.", cursor.rowcount)
        return cursor.rowcount


# ── Row mapping ───────────────────────────────────────────────────────────────

def _record_params(record: LedgerRecord) -> tuple:
    return (
        record.id,
        record.symbol,
        to_iso(record.entry_date),
        record.recommendation_price,
        record.entry_price,
        record.target_price,
        record.stop_loss,
        record.status.value,
        record.exit_price,
        to_iso(record.exit_date),
        record.percent_change,
    )


def _row_to_record(row: sqlite3.Row) -> LedgerRecord:
    return LedgerRecord(
        id=row["record_id"],
        symbol=row["symbol"],
        entry_date=from_iso(row["entry_date"]),
        recommendation_price=row["recommendation_price"],
        entry_price=row["entry_price"],
        target_price=row["target_price"],
        stop_loss=row["stop_loss"],
        status=LedgerStatus(row["status"]),
        exit_price=row["exit_price"],
        exit_date=from_iso(row["exit_date"]),
        percent_change=row["percent_change"],
    )
