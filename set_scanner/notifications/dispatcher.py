"""
Fire-and-forget delivery of scan events to a ``Notifier``.

``dispatch()`` schedules a background task and returns immediately, so a
slow or failing channel never delays a scan cycle. Every message is sent
independently; a ``NotificationError`` is logged at WARNING and dropped.
Background sends also log any other exception the notifier raises (with
traceback) instead of leaving it on the finished task.
Call ``wait_for_notifications()`` before the event loop shuts down to let
pending sends finish.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional, Sequence

from set_scanner.exceptions import NotificationError
from set_scanner.models.alert import AlertTriggered
from set_scanner.models.ledger import LedgerTransition
from set_scanner.models.recommendation import Recommendation
from set_scanner.notifications.formatters import (
    format_alert,
    format_new_signals,
    format_transition,
)
from set_scanner.notifications.telegram import Notifier
from set_scanner.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(self, notifier: Notifier, utc_offset_hours: int = 7) -> None:
        self.notifier = notifier
        self.utc_offset_hours = utc_offset_hours
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def deliver(self, text: str) -> bool:
        """Send one message now; ``False`` if the channel failed."""
        try:
            await self.notifier.send(text)
        except NotificationError as exc:
            logger.warning("Notification not delivered: %s", exc)
            return False
        return True

    def dispatch(self, text: str) -> asyncio.Task[None]:
        """Schedule ``text`` for delivery in the background.

        Must be called from inside a running event loop.
        """
        task = asyncio.get_running_loop().create_task(self._deliver_quietly(text))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver_quietly(self, text: str) -> None:
        try:
            await self.deliver(text)
        except Exception:
            logger.warning("Notifier raised unexpectedly; message dropped.", exc_info=True)

    def notify_new_signals(
        self, recs: Sequence[Recommendation], now: Optional[datetime] = None
    ) -> Optional[asyncio.Task[None]]:
        if not recs:
            return None
        return self.dispatch(format_new_signals(recs, now or utcnow(), self.utc_offset_hours))

    def notify_transitions(
        self, transitions: Sequence[LedgerTransition]
    ) -> list[asyncio.Task[None]]:
        return [self.dispatch(format_transition(t)) for t in transitions]

    def notify_alerts(self, events: Sequence[AlertTriggered]) -> list[asyncio.Task[None]]:
        return [self.dispatch(format_alert(e)) for e in events]

    async def wait_for_notifications(self) -> None:
        """Wait until every scheduled message has been sent or dropped."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
