"""
SQLite connection management for the scanner store.

``get_connection()`` yields a connection with:
  - ``sqlite3.Row`` rows (dict-style access in repositories).
  - A busy timeout, and WAL journaling unless disabled.
  - Commit on clean exit, rollback on exception.

One-shot commands (``scan``, ``alert-add`` ...) use the default
transactional mode. The long-running ``watch`` loop opens the connection
with ``autocommit=True`` so every ledger and alert write is durable as
soon as it is made, not only when the loop exits.

Usage::

    from set_scanner.db.connection import get_connection

    with get_connection("data/db/set_scanner.db") as conn:
        SqliteLedgerRepository(conn).upsert(record)
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

logger = logging.getLogger(__name__)


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
    autocommit: bool = False,
) -> Generator[sqlite3.Connection, None, None]:
    """Yield a configured SQLite connection and close it afterwards.

    Args:
        db_path: Database file path, or ``":memory:"``. Parent directories
            are created for file paths.
        wal_mode: Enable WAL journaling.
        busy_timeout_ms: Lock wait before ``OperationalError``.
        autocommit: Commit every statement immediately.

    Raises:
        sqlite3.OperationalError: If the database cannot be opened or is locked.
    """
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(
        db_path,
        timeout=busy_timeout_ms / 1000,
        isolation_level=None if autocommit else "DEFERRED",
    )
    conn.row_factory = sqlite3.Row
    logger.debug("Opened SQLite connection: %s (autocommit=%s)", db_path, autocommit)

    try:
        conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms};")
        if wal_mode and db_path != ":memory:":
            conn.execute("PRAGMA journal_mode = WAL;")

        yield conn
        if not autocommit:
            conn.commit()

    except Exception:
        if conn.in_transaction:
            conn.rollback()
        raise

    finally:
        conn.close()
