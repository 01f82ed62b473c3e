"""
Price alerts: one user-defined watch condition per symbol.

``AlertBook.check(prices)`` fires every active alert whose condition the
fresh price satisfies, deactivates it (it is kept, not deleted) and returns
``AlertTriggered`` events. Like the ledger, the book writes through to its
repository and logs, rather than raises, on storage failures.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from set_scanner.db.repositories.protocols import AlertRepository
from set_scanner.exceptions import PersistenceError
from set_scanner.models.alert import Alert, AlertCondition, AlertTriggered

logger = logging.getLogger(__name__)


class AlertBook:
    def __init__(self, repository: AlertRepository) -> None:
        self._repository = repository
        try:
            loaded = repository.list_alerts()
        except PersistenceError as exc:
            logger.error("Could not load alerts; starting empty: %s", exc)
            loaded = []
        self._alerts: dict[str, Alert] = {a.symbol: a for a in loaded}

    def alerts(self) -> list[Alert]:
        return [self._alerts[s] for s in sorted(self._alerts)]

    def active_alerts(self) -> list[Alert]:
        return [a for a in self.alerts() if a.is_active]

    def get(self, symbol: str) -> Optional[Alert]:
        return self._alerts.get(symbol.strip().upper())

    def add(self, symbol: str, target_price: float, condition: AlertCondition) -> Alert:
        """Set the alert for ``symbol``, replacing any previous one."""
        alert = Alert(symbol=symbol, target_price=target_price, condition=condition)
        replaced = alert.symbol in self._alerts
        self._alerts[alert.symbol] = alert
        self._save(alert)
        logger.info(
            "%s alert %s %s %.2f",
            "Replaced" if replaced else "Added",
            alert.symbol, alert.condition, alert.target_price,
        )
        return alert

    def remove(self, symbol: str) -> bool:
        """Delete the alert for ``symbol``; ``False`` when there was none."""
        symbol = symbol.strip().upper()
        removed = self._alerts.pop(symbol, None) is not None
        if removed:
            try:
                self._repository.delete(symbol)
            except PersistenceError as exc:
                logger.error("Could not delete stored alert for %s: %s", symbol, exc)
        return removed

    def check(self, prices: Mapping[str, float]) -> list[AlertTriggered]:
        """Fire and deactivate alerts satisfied by ``prices``.

        Args:
            prices: symbol → latest price. Symbols without a price are skipped.
        """
        fired: list[AlertTriggered] = []
        for symbol, alert in list(self._alerts.items()):
            price = prices.get(symbol)
            if price is None or not alert.is_triggered_by(price):
                continue
            deactivated = alert.model_copy(update={"is_active": False})
            self._alerts[symbol] = deactivated
            self._save(deactivated)
            fired.append(AlertTriggered(alert=alert, price=price))
            logger.info(
                "Alert fired: %s %.2f (%s %.2f)",
                symbol, price, alert.condition, alert.target_price,
            )
        return fired

    def _save(self, alert: Alert) -> None:
        try:
            self._repository.upsert(alert)
        except PersistenceError as exc:
            logger.error("Could not persist alert for %s: %s", alert.symbol, exc)
