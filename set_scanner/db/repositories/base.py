"""
Base class for the SQLite repositories.

Repositories receive an open ``sqlite3.Connection`` (normally from
``get_connection()``) and speak Pydantic models, not rows. All SQL is
explicit. Driver errors are re-raised as ``PersistenceError`` so callers in
the ledger and alert layers never need to import ``sqlite3``.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any, Optional

from set_scanner.exceptions import PersistenceError

logger = logging.getLogger(__name__)

Params = tuple[Any, ...] | dict[str, Any]


class BaseRepository:
    """Shared SQL helpers.

    Attributes:
        conn: The active ``sqlite3.Connection``.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def execute(self, sql: str, params: Params = ()) -> sqlite3.Cursor:
        logger.debug("SQL: %s | params: %s", sql.strip(), params)
        try:
            return self.conn.execute(sql, params)
        except sqlite3.Error as exc:
            raise PersistenceError(f"SQL failed: {exc}") from exc

    def fetchone(self, sql: str, params: Params = ()) -> Optional[sqlite3.Row]:
        return self.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: Params = ()) -> list[sqlite3.Row]:
        return self.execute(sql, params).fetchall()


def to_iso(moment: Optional[datetime]) -> Optional[str]:
    """Serialise a datetime as ISO-8601 UTC; naive values are taken as UTC."""
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat()


def from_iso(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment
