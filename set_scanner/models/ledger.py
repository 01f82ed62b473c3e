"""
Paper-trading ledger models.

``LedgerRecord`` is a saved trade idea: the price levels of a recommendation
at the moment it was recorded, plus its outcome once a later quote crosses
the target or the stop.

Status machine::

    OPEN ──price >= target──▶ WIN   (terminal)
    OPEN ──price <= stop────▶ LOSS  (terminal)

``HOLD`` is a valid stored status but nothing transitions into or out of it.
Records are frozen; a transition yields a new record via ``model_copy``.

``LedgerTransition`` is the event emitted when a record closes. The ledger
only produces these; delivering notifications about them is somebody
else's job (see ``set_scanner.notifications.dispatcher``).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


class LedgerStatus(StrEnum):
    """Lifecycle status of a ledger record."""

    OPEN = "OPEN"
    WIN = "WIN"
    LOSS = "LOSS"
    HOLD = "HOLD"

    @property
    def is_terminal(self) -> bool:
        return self in (LedgerStatus.WIN, LedgerStatus.LOSS)


class LedgerRecord(BaseModel):
    """A recorded trade idea and its outcome.

    Attributes:
        id: Unique identifier (uuid4 string).
        symbol: Exchange symbol.
        entry_date: UTC timestamp of creation.
        recommendation_price: Market price when the idea was recorded.
        entry_price: Planned entry (tick-rounded).
        target_price: Take-profit level.
        stop_loss: Stop level.
        status: ``OPEN`` / ``WIN`` / ``LOSS`` / ``HOLD``.
        exit_price: Price that closed the record, when closed.
        exit_date: UTC timestamp of the close, when closed.
        percent_change: ``(exit - entry) / entry * 100``, when closed.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    symbol: str
    entry_date: datetime
    recommendation_price: float
    entry_price: float
    target_price: float
    stop_loss: float
    status: LedgerStatus = LedgerStatus.OPEN
    exit_price: Optional[float] = None
    exit_date: Optional[datetime] = None
    percent_change: Optional[float] = None

    @model_validator(mode="after")
    def validate_exit_fields(self) -> "LedgerRecord":
        if self.status.is_terminal and (self.exit_price is None or self.exit_date is None):
            raise ValueError(
                f"{self.status} records must carry exit_price and exit_date."
            )
        return self


@dataclass(frozen=True)
class LedgerTransition:
    """A record left ``OPEN``.

    Attributes:
        record: The updated (closed) record.
        previous_status: Status before the transition (always ``OPEN``).
    """

    record: LedgerRecord
    previous_status: LedgerStatus = LedgerStatus.OPEN

    @property
    def symbol(self) -> str:
        return self.record.symbol

    @property
    def status(self) -> LedgerStatus:
        return self.record.status


@dataclass(frozen=True)
class LedgerStats:
    """Summary counts across the whole ledger."""

    total: int
    active: int
    wins: int
    losses: int
    win_rate: float
