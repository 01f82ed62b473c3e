"""
SQLite schema DDL for the scanner store.

Every statement uses ``IF NOT EXISTS``, so ``apply_schema()`` is idempotent
and safe to run on every start-up and in every test.

Tables
------
  ledger_records      paper-trading ledger (one row per recorded idea)
  price_alerts        at most one alert per symbol (symbol is the key)
  stock_fundamentals  latest known dividend yield per symbol

Timestamps are stored as ISO-8601 UTC strings.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_LEDGER_RECORDS = """
CREATE TABLE IF NOT EXISTS ledger_records (
    record_id            TEXT    PRIMARY KEY,
    symbol               TEXT    NOT NULL,
    entry_date           TEXT    NOT NULL,
    recommendation_price REAL    NOT NULL,
    entry_price          REAL    NOT NULL,
    target_price         REAL    NOT NULL,
    stop_loss            REAL    NOT NULL,
    status               TEXT    NOT NULL DEFAULT 'OPEN'
                                 CHECK (status IN ('OPEN', 'WIN', 'LOSS', 'HOLD')),
    exit_price           REAL,
    exit_date            TEXT,
    percent_change       REAL,
    created_at           TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
CREATE INDEX IF NOT EXISTS idx_ledger_symbol_entry ON ledger_records (symbol, entry_date);
CREATE INDEX IF NOT EXISTS idx_ledger_status       ON ledger_records (status);
"""

_DDL_PRICE_ALERTS = """
CREATE TABLE IF NOT EXISTS price_alerts (
    symbol        TEXT    PRIMARY KEY,
    target_price  REAL    NOT NULL CHECK (target_price > 0),
    condition     TEXT    NOT NULL CHECK (condition IN ('above', 'below')),
    is_active     INTEGER NOT NULL DEFAULT 1,
    updated_at    TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_STOCK_FUNDAMENTALS = """
CREATE TABLE IF NOT EXISTS stock_fundamentals (
    symbol          TEXT    PRIMARY KEY,
    dividend_yield  REAL,
    updated_at      TEXT    NOT NULL
);
"""

_ALL_DDL: list[str] = [
    _DDL_LEDGER_RECORDS,
    _DDL_PRICE_ALERTS,
    _DDL_STOCK_FUNDAMENTALS,
]

ALL_TABLE_NAMES = [
    "ledger_records",
    "price_alerts",
    "stock_fundamentals",
]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Create every table and index that does not exist yet."""
    for ddl in _ALL_DDL:
        for statement in _split_ddl(ddl):
            conn.execute(statement)
    logger.info("Schema applied: %d tables verified.", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    return [s.strip() for s in ddl.split(";") if s.strip()]


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Table names present in the database, sorted."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]


def get_existing_indexes(conn: sqlite3.Connection) -> list[str]:
    """Explicitly created index names, sorted (SQLite autoindexes excluded)."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master "
        "WHERE type='index' AND name NOT LIKE 'sqlite_autoindex_%' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]
