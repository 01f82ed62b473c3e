"""
Price alert model: a user-defined watch condition on one symbol.

At most one alert exists per symbol; setting a new one replaces the old.
A triggered alert is deactivated, not deleted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

AlertCondition = Literal["above", "below"]


class Alert(BaseModel):
    """Fire once when the price reaches ``target_price`` from the given side.

    Attributes:
        symbol: Exchange symbol.
        target_price: Trigger level (baht).
        condition: ``"above"`` fires on ``price >= target``;
            ``"below"`` fires on ``price <= target``.
        is_active: ``False`` once triggered.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    target_price: float = Field(gt=0.0)
    condition: AlertCondition
    is_active: bool = True

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("symbol must not be empty.")
        return v

    def is_triggered_by(self, price: float) -> bool:
        """True when this alert is active and ``price`` satisfies the condition."""
        if not self.is_active:
            return False
        if self.condition == "above":
            return price >= self.target_price
        return price <= self.target_price


@dataclass(frozen=True)
class AlertTriggered:
    """Event: an active alert fired against a fresh price."""

    alert: Alert
    price: float

    @property
    def symbol(self) -> str:
        return self.alert.symbol
