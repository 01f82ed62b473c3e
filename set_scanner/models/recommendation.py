"""
Recommendation model: a scored trade idea derived from one ``Quote``.

Built fresh every scan cycle and never mutated; the next cycle's
recommendation for the same symbol supersedes it.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from set_scanner.models.quote import MacdSignal, Momentum, Volatility

IndicatorSource = Literal["computed", "estimated"]


class IndicatorBundle(BaseModel):
    """Indicator snapshot attached to a recommendation.

    Attributes:
        rsi: RSI rounded to an integer in [0, 100].
        macd: MACD classification.
        volume_change: Volume as a percent of the 20-session average.
        above_ma20: Price above the 20-session moving average.
        above_ma50: Price above the 50-session moving average.
    """

    model_config = ConfigDict(frozen=True)

    rsi: int = Field(ge=0, le=100)
    macd: MacdSignal
    volume_change: int
    above_ma20: bool
    above_ma50: bool


class Recommendation(BaseModel):
    """A ranked trade candidate.

    ``score`` is an unclamped additive heuristic (higher = more attractive),
    not a probability.

    Attributes:
        symbol: Exchange symbol.
        name: Display name.
        current_price: Price the recommendation was built from.
        entry_point: Tick-rounded entry price.
        target_price: Tick-rounded take-profit (+5%).
        stop_loss: Tick-rounded stop (-3%).
        risk_reward: ``"1:X.XX"`` or ``"1:0"`` when risk is not positive.
        holding_period: Suggested holding window label.
        technical_setup: Short description of the active signals.
        indicators: RSI / MACD / volume / moving-average snapshot.
        chart_pattern: Pattern label.
        volume: Latest session volume.
        avg_volume: 20-session average volume.
        volatility: Day-range volatility class.
        momentum: Momentum class.
        dividend_yield: Percent.
        score: Composite integer score.
        indicator_source: Whether RSI/MACD came from history or estimation.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    name: str
    current_price: float
    entry_point: float
    target_price: float
    stop_loss: float
    risk_reward: str
    holding_period: str
    technical_setup: str
    indicators: IndicatorBundle
    chart_pattern: str
    volume: float
    avg_volume: float
    volatility: Volatility
    momentum: Momentum
    dividend_yield: float
    score: int
    indicator_source: IndicatorSource = "estimated"

    @property
    def volume_ratio(self) -> float:
        return self.volume / self.avg_volume if self.avg_volume > 0 else 1.0

    @property
    def traded_value(self) -> float:
        """Baht notional traded in the latest session."""
        return self.volume * self.current_price
