"""
One scan cycle: fetch quotes → alerts → ledger → build → filter/rank →
record → notify.

Concurrency contract
--------------------
- ``run()`` is the sole public API. Cycles are serialized by an
  ``asyncio.Lock``; only the quote fetch awaits.
- Each call bumps a generation counter. A newer call cancels the in-flight
  fetch of an older cycle; the older cycle returns ``status="superseded"``
  and its quotes are discarded. A call still queued on the lock when an even
  newer call arrives is superseded the same way.
- Cancelling the caller of ``run()`` itself is never mistaken for
  supersession: the ``CancelledError`` propagates.
- Everything after the fetch is synchronous, so no other cycle can observe
  or modify the ledger while a cycle is processing its quotes.
- Notifications are handed to ``NotificationDispatcher`` as background
  tasks; ``wait_for_notifications()`` drains them.

Usage::

    runner = ScanCycleRunner(quote_source, ledger, alert_book, dispatcher)
    result = await runner.run(params, symbols)
    if result.completed:
        print(len(result.ranked))
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Literal, Optional, Protocol

from set_scanner.db.repositories.protocols import FundamentalsRepository
from set_scanner.exceptions import PersistenceError
from set_scanner.ledger.alerts import AlertBook
from set_scanner.ledger.tracker import LedgerTracker
from set_scanner.models.alert import AlertTriggered
from set_scanner.models.ledger import LedgerRecord, LedgerTransition
from set_scanner.models.quote import Quote
from set_scanner.models.recommendation import Recommendation
from set_scanner.models.scan import ScanParams
from set_scanner.notifications.dispatcher import NotificationDispatcher
from set_scanner.recommendations.builder import (
    DividendFallback,
    build_recommendations,
    zero_dividend_fallback,
)
from set_scanner.recommendations.ranker import filter_and_rank
from set_scanner.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

CycleStatus = Literal["completed", "superseded"]


class QuoteSource(Protocol):
    async def fetch_quotes(self, symbols: Iterable[str]) -> list[Quote]: ...


@dataclass
class ScanResult:
    """Outcome of one ``ScanCycleRunner.run()`` call.

    Attributes:
        status:           ``"completed"`` or ``"superseded"``.
        cycle_id:         Generation number of the call.
        params:           Filters the cycle ran with.
        started_at:       UTC start time.
        finished_at:      UTC end time.
        quotes_fetched:   Quotes that survived the fetch.
        recommendations:  Every recommendation built (unfiltered).
        ranked:           Filtered and ranked list.
        new_signals:      Ranked symbols absent from the previous cycle.
        transitions:      Ledger records closed this cycle.
        alerts_triggered: Alerts fired this cycle.
        recorded:         Ledger records created this cycle.
    """

    status:           CycleStatus
    cycle_id:         int
    params:           ScanParams
    started_at:       datetime
    finished_at:      datetime
    quotes_fetched:   int = 0
    recommendations:  list[Recommendation] = field(default_factory=list)
    ranked:           list[Recommendation] = field(default_factory=list)
    new_signals:      list[Recommendation] = field(default_factory=list)
    transitions:      list[LedgerTransition] = field(default_factory=list)
    alerts_triggered: list[AlertTriggered] = field(default_factory=list)
    recorded:         list[LedgerRecord] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.status == "completed"

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()


class ScanCycleRunner:
    """Runs serialized, cancellable scan cycles over injected collaborators.

    Args:
        quote_source:      Anything with ``async fetch_quotes(symbols)``.
        ledger:            Paper-trading ledger.
        alert_book:        Price alerts.
        dispatcher:        Notification sink; ``None`` disables notifications.
        fundamentals:      Dividend-yield store merged into quotes lacking one.
        dividend_fallback: Yield for symbols still unknown after the merge.
        record_ranked:     Save ranked recommendations to the ledger.
        clock:             UTC clock (injectable for tests).
    """

    def __init__(
        self,
        quote_source: QuoteSource,
        ledger: LedgerTracker,
        alert_book: AlertBook,
        dispatcher: Optional[NotificationDispatcher] = None,
        fundamentals: Optional[FundamentalsRepository] = None,
        dividend_fallback: DividendFallback = zero_dividend_fallback,
        record_ranked: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.quote_source = quote_source
        self.ledger = ledger
        self.alert_book = alert_book
        self.dispatcher = dispatcher
        self.fundamentals = fundamentals
        self.dividend_fallback = dividend_fallback
        self.record_ranked = record_ranked
        self.clock = clock

        self._lock = asyncio.Lock()
        self._generation = 0
        self._fetch_task: Optional[asyncio.Task[list[Quote]]] = None
        self._previous_symbols: Optional[frozenset[str]] = None

    async def run(self, params: ScanParams, symbols: Iterable[str]) -> ScanResult:
        """Run one cycle, superseding any older cycle still fetching."""
        self._generation += 1
        generation = self._generation
        started_at = self.clock()
        symbols = list(symbols)

        if self._fetch_task is not None and not self._fetch_task.done():
            logger.info("Cycle %d supersedes an in-flight fetch.", generation)
            self._fetch_task.cancel()

        async with self._lock:
            if generation != self._generation:
                return self._superseded(generation, params, started_at)

            fetch = asyncio.ensure_future(self.quote_source.fetch_quotes(symbols))
            self._fetch_task = fetch
            try:
                quotes = await fetch
            except asyncio.CancelledError:
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    raise
                return self._superseded(generation, params, started_at)
            finally:
                if self._fetch_task is fetch:
                    self._fetch_task = None

            if generation != self._generation:
                return self._superseded(generation, params, started_at)

            return self._process(generation, params, quotes, started_at)

    async def wait_for_notifications(self) -> None:
        if self.dispatcher is not None:
            await self.dispatcher.wait_for_notifications()

    # ── Synchronous processing ────────────────────────────────────────────────

    def _process(
        self,
        generation: int,
        params: ScanParams,
        quotes: list[Quote],
        started_at: datetime,
    ) -> ScanResult:
        now = self.clock()
        prices = {q.symbol: q.price for q in quotes if q.price > 0}

        alerts_triggered = self.alert_book.check(prices)
        transitions = self.ledger.update_open_records(prices, now)

        quotes = self._merge_fundamentals(quotes)
        recommendations = build_recommendations(quotes, self.dividend_fallback)
        ranked = filter_and_rank(recommendations, params, self.ledger.open_symbols())

        recorded: list[LedgerRecord] = []
        if self.record_ranked:
            recorded = self.ledger.record_recommendations(ranked, now)

        new_signals = self._detect_new_signals(ranked)

        if self.dispatcher is not None:
            self.dispatcher.notify_alerts(alerts_triggered)
            self.dispatcher.notify_transitions(transitions)
            self.dispatcher.notify_new_signals(new_signals, now)

        result = ScanResult(
            status="completed",
            cycle_id=generation,
            params=params,
            started_at=started_at,
            finished_at=self.clock(),
            quotes_fetched=len(quotes),
            recommendations=recommendations,
            ranked=ranked,
            new_signals=new_signals,
            transitions=transitions,
            alerts_triggered=alerts_triggered,
            recorded=recorded,
        )
        logger.info(
            "Cycle %d: %d quotes, %d ranked, %d new, %d closed, %d alerts (%.2fs)",
            generation, len(quotes), len(ranked), len(new_signals),
            len(transitions), len(alerts_triggered), result.duration_seconds,
            extra={"cycle": generation},
        )
        return result

    def _merge_fundamentals(self, quotes: list[Quote]) -> list[Quote]:
        """Fill missing dividend yields from the fundamentals store."""
        missing = [q.symbol for q in quotes if not q.dividend_yield]
        if self.fundamentals is None or not missing:
            return quotes
        try:
            yields = self.fundamentals.get_dividend_yields(missing)
        except PersistenceError as exc:
            logger.error("Could not read fundamentals: %s", exc)
            return quotes
        return [
            q.model_copy(update={"dividend_yield": yields[q.symbol]})
            if not q.dividend_yield and q.symbol in yields
            else q
            for q in quotes
        ]

    def _detect_new_signals(self, ranked: list[Recommendation]) -> list[Recommendation]:
        """Ranked symbols absent from the previous completed cycle.

        The first cycle only establishes the baseline.
        """
        current = frozenset(r.symbol for r in ranked)
        previous = self._previous_symbols
        self._previous_symbols = current
        if previous is None:
            return []
        return [r for r in ranked if r.symbol not in previous]

    def _superseded(
        self, generation: int, params: ScanParams, started_at: datetime
    ) -> ScanResult:
        logger.info(
            "Cycle %d superseded; discarding its quotes.", generation, extra={"cycle": generation}
        )
        return ScanResult(
            status="superseded",
            cycle_id=generation,
            params=params,
            started_at=started_at,
            finished_at=self.clock(),
        )
