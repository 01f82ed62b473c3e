"""Domain exceptions raised at the scanner's I/O edges."""

from __future__ import annotations


class ScannerError(RuntimeError):
    """Base class for scanner errors."""


class QuoteFetchError(ScannerError):
    """A quote (or fundamentals) request for one symbol failed."""

    def __init__(self, symbol: str, reason: str) -> None:
        super().__init__(f"{symbol}: {reason}")
        self.symbol = symbol
        self.reason = reason


class PersistenceError(ScannerError):
    """A repository read or write failed."""


class NotificationError(ScannerError):
    """The operator channel rejected or could not receive a message."""
