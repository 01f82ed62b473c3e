"""
Quote model: one symbol's market snapshot for a single scan cycle.

A quote either arrives with indicators computed from real close history
(``ComputedIndicators``) or without a usable MACD (``NeedsEstimate``), in
which case the recommendation builder falls back to snapshot heuristics.
``NeedsEstimate`` still carries a history RSI when there are enough closes
for RSI but not for MACD. The two cases are a tagged union on the ``kind``
field, so every consumer has to pick a branch.

Quotes are frozen: they are produced by the quote source and never mutated
while a cycle runs. Enrichment (e.g. a dividend yield from the
fundamentals store) goes through ``model_copy(update=...)``.
"""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

MacdSignal = Literal["bullish", "bearish", "neutral"]
Volatility = Literal["low", "medium", "high"]
Momentum = Literal["strong", "moderate", "weak"]


class ComputedIndicators(BaseModel):
    """RSI and MACD classification computed from real close history.

    Attributes:
        rsi: Wilder RSI in [0, 100] (not yet rounded).
        macd_signal: MACD crossover / trend classification.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["computed"] = "computed"
    rsi: float = Field(ge=0.0, le=100.0)
    macd_signal: MacdSignal


class NeedsEstimate(BaseModel):
    """Too little history for a MACD; the builder estimates it from the snapshot.

    Attributes:
        rsi: Wilder RSI when the history is long enough for RSI alone,
            else ``None`` and RSI is estimated as well.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["estimate"] = "estimate"
    rsi: Optional[float] = Field(default=None, ge=0.0, le=100.0)


IndicatorInput = Annotated[
    Union[ComputedIndicators, NeedsEstimate],
    Field(discriminator="kind"),
]


class Quote(BaseModel):
    """Latest market snapshot for one symbol.

    Attributes:
        symbol: Exchange symbol without suffix, e.g. ``"PTT"``.
        name: Display name.
        price: Last traded price (baht).
        high: Day high.
        low: Day low.
        open: Day open.
        previous_close: Previous session close.
        change_percent: ``(price - previous_close) / previous_close * 100``.
        volume: Shares traded in the latest session.
        avg_volume: Mean volume over the last 20 sessions.
        dividend_yield: Percent, or ``None`` when unknown.
        closes: Daily closes, oldest → newest (may be empty).
        indicators: ``ComputedIndicators`` or ``NeedsEstimate``.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    name: str = ""
    price: float = Field(ge=0.0)
    high: float = Field(default=0.0, ge=0.0)
    low: float = Field(default=0.0, ge=0.0)
    open: float = Field(default=0.0, ge=0.0)
    previous_close: float = Field(default=0.0, ge=0.0)
    change_percent: float = 0.0
    volume: float = Field(default=0.0, ge=0.0)
    avg_volume: float = Field(default=0.0, ge=0.0)
    dividend_yield: Optional[float] = None
    closes: tuple[float, ...] = ()
    indicators: IndicatorInput = NeedsEstimate()

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("symbol must not be empty.")
        return v

    @property
    def volume_ratio(self) -> float:
        """Latest volume relative to the 20-session average (1.0 when unknown)."""
        return self.volume / self.avg_volume if self.avg_volume > 0 else 1.0
