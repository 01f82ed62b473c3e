"""
In-memory repositories.

Drop-in replacements for the SQLite repositories, used by tests and by the
``scan --no-db`` mode. State lives for the lifetime of the object.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Mapping, Optional

from set_scanner.models.alert import Alert
from set_scanner.models.ledger import LedgerRecord


class InMemoryLedgerRepository:
    def __init__(self, records: Iterable[LedgerRecord] = ()) -> None:
        self._records: dict[str, LedgerRecord] = {r.id: r for r in records}

    def list_records(self) -> list[LedgerRecord]:
        return sorted(self._records.values(), key=lambda r: r.entry_date, reverse=True)

    def upsert(self, record: LedgerRecord) -> None:
        self._records[record.id] = record

    def upsert_many(self, records: Iterable[LedgerRecord]) -> None:
        for record in records:
            self.upsert(record)

    def delete_all(self) -> int:
        count = len(self._records)
        self._records.clear()
        return count


class InMemoryAlertRepository:
    def __init__(self, alerts: Iterable[Alert] = ()) -> None:
        self._alerts: dict[str, Alert] = {a.symbol: a for a in alerts}

    def list_alerts(self) -> list[Alert]:
        return [self._alerts[s] for s in sorted(self._alerts)]

    def upsert(self, alert: Alert) -> None:
        self._alerts[alert.symbol] = alert

    def delete(self, symbol: str) -> bool:
        return self._alerts.pop(symbol.strip().upper(), None) is not None


class InMemoryFundamentalsRepository:
    def __init__(self, yields: Optional[Mapping[str, float]] = None) -> None:
        self._yields: dict[str, float] = {s.upper(): y for s, y in (yields or {}).items()}
        self.updated_at: Optional[datetime] = None

    def get_dividend_yields(
        self, symbols: Optional[Iterable[str]] = None
    ) -> dict[str, float]:
        if symbols is None:
            return dict(self._yields)
        wanted = {s.upper() for s in symbols}
        return {s: y for s, y in self._yields.items() if s in wanted}

    def upsert_dividend_yields(
        self, yields: Mapping[str, float], updated_at: datetime
    ) -> int:
        self._yields.update({s.upper(): y for s, y in yields.items()})
        self.updated_at = updated_at
        return len(yields)
