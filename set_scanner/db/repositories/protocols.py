"""
Storage protocols consumed by the ledger, alert book and scan cycle.

Two implementations exist for each: SQLite (``ledger_repo``, ``alert_repo``,
``fundamentals_repo``) and in-memory (``memory``). Implementations raise
``PersistenceError`` on storage failures.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Mapping, Optional, Protocol

from set_scanner.models.alert import Alert
from set_scanner.models.ledger import LedgerRecord


class LedgerRepository(Protocol):
    def list_records(self) -> list[LedgerRecord]:
        """All records, newest ``entry_date`` first."""
        ...

    def upsert(self, record: LedgerRecord) -> None:
        """Insert or replace by ``record.id``."""
        ...

    def upsert_many(self, records: Iterable[LedgerRecord]) -> None: ...

    def delete_all(self) -> int:
        """Remove every record; return the number removed."""
        ...


class AlertRepository(Protocol):
    def list_alerts(self) -> list[Alert]: ...

    def upsert(self, alert: Alert) -> None:
        """Insert or replace the alert for ``alert.symbol``."""
        ...

    def delete(self, symbol: str) -> bool:
        """Remove the alert for ``symbol``; ``False`` when none existed."""
        ...


class FundamentalsRepository(Protocol):
    def get_dividend_yields(
        self, symbols: Optional[Iterable[str]] = None
    ) -> dict[str, float]:
        """Known yields, optionally restricted to ``symbols``."""
        ...

    def upsert_dividend_yields(
        self, yields: Mapping[str, float], updated_at: datetime
    ) -> int: ...
