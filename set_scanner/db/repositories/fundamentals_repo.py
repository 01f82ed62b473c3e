"""
SQLite repository for per-symbol fundamentals (``stock_fundamentals``).

Only the dividend yield is tracked. It is refreshed by the
``update-fundamentals`` command and merged into quotes that arrive without
one.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Mapping, Optional

from set_scanner.db.repositories.base import BaseRepository, to_iso

logger = logging.getLogger(__name__)


class SqliteFundamentalsRepository(BaseRepository):
    """Read/write access to ``stock_fundamentals``."""

    def get_dividend_yields(
        self, symbols: Optional[Iterable[str]] = None
    ) -> dict[str, float]:
        """Known (non-NULL) yields, optionally restricted to ``symbols``."""
        rows = self.fetchall(
            "SELECT symbol, dividend_yield FROM stock_fundamentals "
            "WHERE dividend_yield IS NOT NULL;"
        )
        yields = {row["symbol"]: float(row["dividend_yield"]) for row in rows}
        if symbols is None:
            return yields
        wanted = {s.upper() for s in symbols}
        return {s: y for s, y in yields.items() if s in wanted}

    def upsert_dividend_yields(
        self, yields: Mapping[str, float], updated_at: datetime
    ) -> int:
        """Insert or replace yields; return the number of rows written."""
        stamp = to_iso(updated_at)
        for symbol, dividend_yield in yields.items():
            self.execute(
                """
                INSERT INTO stock_fundamentals (symbol, dividend_yield, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(symbol) DO UPDATE SET
                    dividend_yield = excluded.dividend_yield,
                    updated_at     = excluded.updated_at;
                """,
                (symbol.upper(), dividend_yield, stamp),
            )
        logger.info("Stored dividend yields for %d symbols.", len(yields))
        return len(yields)
