"""Tests for the SQLite schema and connection helper: idempotency, tables, indexes, constraints."""

from __future__ import annotations

import sqlite3

import pytest

from set_scanner.db.connection import get_connection
from set_scanner.db.schema import (
    ALL_TABLE_NAMES,
    apply_schema,
    get_existing_indexes,
    get_existing_tables,
)


class TestApplySchema:
    def test_all_tables_created(self, in_memory_db):
        tables = get_existing_tables(in_memory_db)
        for expected_table in ALL_TABLE_NAMES:
            assert expected_table in tables, (
                f"Expected table '{expected_table}' not found in database. "
                f"Found: {tables}"
            )

    def test_idempotent_double_apply(self, in_memory_db):
        """apply_schema() called twice must not raise errors."""
        apply_schema(in_memory_db)
        assert sorted(get_existing_tables(in_memory_db)) == sorted(ALL_TABLE_NAMES)

    def test_ledger_indexes(self, in_memory_db):
        indexes = get_existing_indexes(in_memory_db)
        assert "idx_ledger_symbol_entry" in indexes
        assert "idx_ledger_status" in indexes
        assert not any(name.startswith("sqlite_autoindex") for name in indexes)


class TestConstraints:
    def _insert_record(self, conn: sqlite3.Connection, status: str) -> None:
        conn.execute(
            """
            INSERT INTO ledger_records (
                record_id, symbol, entry_date, recommendation_price, entry_price,
                target_price, stop_loss, status
            ) VALUES ('r1', 'PTT', '2024-09-16T03:00:00+00:00', 35.25, 35.25, 37.0, 34.25, ?);
            """,
            (status,),
        )

    def test_status_check(self, in_memory_db):
        with pytest.raises(sqlite3.IntegrityError):
            self._insert_record(in_memory_db, "PENDING")

    def test_valid_status_accepted(self, in_memory_db):
        self._insert_record(in_memory_db, "HOLD")
        row = in_memory_db.execute("SELECT status, created_at FROM ledger_records;").fetchone()
        assert row["status"] == "HOLD"
        assert row["created_at"]

    def test_alert_condition_check(self, in_memory_db):
        with pytest.raises(sqlite3.IntegrityError):
            in_memory_db.execute(
                "INSERT INTO price_alerts (symbol, target_price, condition) VALUES ('PTT', 36.0, 'sideways');"
            )

    def test_alert_target_must_be_positive(self, in_memory_db):
        with pytest.raises(sqlite3.IntegrityError):
            in_memory_db.execute(
                "INSERT INTO price_alerts (symbol, target_price, condition) VALUES ('PTT', 0, 'above');"
            )


class TestGetConnection:
    def test_creates_parent_dirs_and_commits(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "scanner.db"
        with get_connection(str(db_path)) as conn:
            apply_schema(conn)
            conn.execute(
                "INSERT INTO stock_fundamentals (symbol, dividend_yield, updated_at) "
                "VALUES ('PTT', 5.8, '2024-09-16T03:00:00+00:00');"
            )
        assert db_path.exists()
        with get_connection(str(db_path)) as conn:
            row = conn.execute("SELECT dividend_yield FROM stock_fundamentals;").fetchone()
        assert row["dividend_yield"] == 5.8

    def test_rolls_back_on_error(self, tmp_path):
        db_path = str(tmp_path / "scanner.db")
        with get_connection(db_path) as conn:
            apply_schema(conn)

        with pytest.raises(RuntimeError):
            with get_connection(db_path) as conn:
                conn.execute(
                    "INSERT INTO stock_fundamentals (symbol, dividend_yield, updated_at) "
                    "VALUES ('PTT', 5.8, 'x');"
                )
                raise RuntimeError("boom")

        with get_connection(db_path) as conn:
            assert conn.execute("SELECT COUNT(*) FROM stock_fundamentals;").fetchone()[0] == 0

    def test_autocommit_writes_are_visible_immediately(self, tmp_path):
        db_path = str(tmp_path / "scanner.db")
        with get_connection(db_path, autocommit=True) as writer:
            apply_schema(writer)
            writer.execute(
                "INSERT INTO stock_fundamentals (symbol, dividend_yield, updated_at) "
                "VALUES ('AOT', 1.2, 'x');"
            )
            with get_connection(db_path) as reader:
                count = reader.execute("SELECT COUNT(*) FROM stock_fundamentals;").fetchone()[0]
        assert count == 1

    def test_wal_mode(self, tmp_path):
        with get_connection(str(tmp_path / "scanner.db")) as conn:
            mode = conn.execute("PRAGMA journal_mode;").fetchone()[0]
        assert mode.lower() == "wal"

    def test_memory_database(self):
        with get_connection(":memory:") as conn:
            apply_schema(conn)
            assert sorted(get_existing_tables(conn)) == sorted(ALL_TABLE_NAMES)
