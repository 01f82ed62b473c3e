"""
Paper-trading ledger: records trade ideas and settles them against later
prices.

Rules
-----
- ``evaluate_price`` is the whole decision: an OPEN record closes as WIN when
  the price reaches the target, else as LOSS when it reaches the stop. The
  target is checked first, so a (degenerate) record whose stop sits above its
  target settles as WIN.
- At most one record per symbol per market calendar day (Bangkok time by
  default). Recording a duplicate returns the existing record.
- The tracker keeps its records in memory and writes through to the
  injected repository. A failed write is logged at ERROR and the in-memory
  state stays authoritative for the rest of the process.
- Transitions are returned as ``LedgerTransition`` events; the tracker never
  notifies anyone itself.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable, Mapping, Optional

from set_scanner.db.repositories.protocols import LedgerRepository
from set_scanner.exceptions import PersistenceError
from set_scanner.models.ledger import (
    LedgerRecord,
    LedgerStats,
    LedgerStatus,
    LedgerTransition,
)
from set_scanner.models.recommendation import Recommendation
from set_scanner.utils.time_utils import market_date, utcnow

logger = logging.getLogger(__name__)


def percent_change(entry_price: float, exit_price: float) -> float:
    """``(exit − entry) / entry × 100``; 0.0 when entry is 0."""
    if entry_price == 0:
        return 0.0
    return round((exit_price - entry_price) / entry_price * 100.0, 4)


def evaluate_price(
    record: LedgerRecord, price: float, now: datetime
) -> Optional[LedgerRecord]:
    """Return the closed record if ``price`` settles it, else ``None``.

    Pure: ``record`` is not modified.
    """
    if record.status != LedgerStatus.OPEN:
        return None

    if price >= record.target_price:
        status = LedgerStatus.WIN
    elif price <= record.stop_loss:
        status = LedgerStatus.LOSS
    else:
        return None

    return record.model_copy(
        update={
            "status": status,
            "exit_price": price,
            "exit_date": now,
            "percent_change": percent_change(record.entry_price, price),
        }
    )


def record_from_recommendation(rec: Recommendation, now: datetime) -> LedgerRecord:
    return LedgerRecord(
        symbol=rec.symbol,
        entry_date=now,
        recommendation_price=rec.current_price,
        entry_price=rec.entry_point,
        target_price=rec.target_price,
        stop_loss=rec.stop_loss,
    )


class LedgerTracker:
    """In-memory ledger with write-through persistence.

    Args:
        repository:       Storage backend.
        utc_offset_hours: Market timezone used for the per-day duplicate check.
    """

    def __init__(self, repository: LedgerRepository, utc_offset_hours: int = 7) -> None:
        self._repository = repository
        self._utc_offset_hours = utc_offset_hours
        try:
            self._records: list[LedgerRecord] = repository.list_records()
        except PersistenceError as exc:
            logger.error("Could not load ledger; starting empty: %s", exc)
            self._records = []

    # ── Queries ───────────────────────────────────────────────────────────────

    def records(self) -> list[LedgerRecord]:
        """All records, newest first."""
        return list(self._records)

    def open_records(self) -> list[LedgerRecord]:
        return [r for r in self._records if r.status == LedgerStatus.OPEN]

    def open_symbols(self) -> frozenset[str]:
        """Symbols with an OPEN record; the ranker's ``excluded_symbols``."""
        return frozenset(r.symbol for r in self.open_records())

    def find_for_day(self, symbol: str, day: date) -> Optional[LedgerRecord]:
        symbol = symbol.upper()
        for record in self._records:
            if (
                record.symbol == symbol
                and market_date(record.entry_date, self._utc_offset_hours) == day
            ):
                return record
        return None

    def stats(self) -> LedgerStats:
        wins = sum(1 for r in self._records if r.status == LedgerStatus.WIN)
        losses = sum(1 for r in self._records if r.status == LedgerStatus.LOSS)
        closed = wins + losses
        return LedgerStats(
            total=len(self._records),
            active=sum(1 for r in self._records if r.status == LedgerStatus.OPEN),
            wins=wins,
            losses=losses,
            win_rate=(wins / closed * 100.0) if closed else 0.0,
        )

    # ── Commands ──────────────────────────────────────────────────────────────

    def record_recommendation(
        self, rec: Recommendation, now: Optional[datetime] = None
    ) -> LedgerRecord:
        """Save ``rec`` as an OPEN record unless one exists for today.

        Returns:
            The new record, or the existing record for (symbol, market day).
        """
        now = now or utcnow()
        existing = self.find_for_day(rec.symbol, market_date(now, self._utc_offset_hours))
        if existing is not None:
            logger.debug("Ledger already has %s for today (id=%s).", rec.symbol, existing.id)
            return existing

        record = record_from_recommendation(rec, now)
        self._records.insert(0, record)
        self._persist([record])
        logger.info(
            "Ledger OPEN %s entry=%.2f target=%.2f stop=%.2f",
            record.symbol, record.entry_price, record.target_price, record.stop_loss,
        )
        return record

    def record_recommendations(
        self, recs: Iterable[Recommendation], now: Optional[datetime] = None
    ) -> list[LedgerRecord]:
        """Record each recommendation; return only the newly created records."""
        now = now or utcnow()
        created: list[LedgerRecord] = []
        for rec in recs:
            before = len(self._records)
            record = self.record_recommendation(rec, now)
            if len(self._records) > before:
                created.append(record)
        return created

    def update_open_records(
        self, prices: Mapping[str, float], now: Optional[datetime] = None
    ) -> list[LedgerTransition]:
        """Settle OPEN records that have a fresh price.

        Args:
            prices: symbol → latest price. Symbols without a price are skipped.
            now:    Exit timestamp for any closed record.

        Returns:
            One ``LedgerTransition`` per record that left OPEN.
        """
        now = now or utcnow()
        transitions: list[LedgerTransition] = []

        for index, record in enumerate(self._records):
            price = prices.get(record.symbol)
            if price is None:
                continue
            closed = evaluate_price(record, price, now)
            if closed is None:
                continue
            self._records[index] = closed
            transitions.append(LedgerTransition(record=closed))
            logger.info(
                "Ledger %s %s at %.2f (%+.2f%%)",
                closed.status, closed.symbol, price, closed.percent_change or 0.0,
            )

        if transitions:
            self._persist([t.record for t in transitions])
        return transitions

    def clear(self) -> int:
        """Remove every record; return how many were removed."""
        count = len(self._records)
        self._records = []
        try:
            self._repository.delete_all()
        except PersistenceError as exc:
            logger.error("Could not clear stored ledger: %s", exc)
        return count

    def _persist(self, records: list[LedgerRecord]) -> None:
        try:
            self._repository.upsert_many(records)
        except PersistenceError as exc:
            logger.error(
                "Could not persist %d ledger record(s); keeping in memory: %s",
                len(records), exc,
            )
