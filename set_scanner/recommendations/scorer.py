"""
Recommendation scoring: an additive heuristic over the day's signals.

The score is unclamped and is NOT a probability. It only orders candidates
within one scan cycle (higher = more attractive).

Score formula (sum of components, typical range 0–115)
------------------------------------------------------
    volume_score      min(30, volume_ratio × 10)
    macd_score        +15 when MACD is bullish
    momentum_score    +10 strong / +5 moderate / 0 weak
    close_score       +15 when the close sits in the top 30% of the day range
    change_score      +5 on a positive day
    rsi_score         +15 for 40 ≤ RSI ≤ 70, +5 above 70, else 0
    volatility_score  +10 medium / +5 high / 0 low

The total is rounded half-up to an integer by ``ScoreComponents.score``.
The RSI fed in here must already be the integer RSI shown on the
recommendation, so the score and the filters see the same value.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from set_scanner.models.quote import MacdSignal, Momentum, Volatility

_VOLUME_SCORE_CAP = 30.0
_VOLUME_SCORE_PER_RATIO = 10.0

_MOMENTUM_SCORE: dict[str, float] = {"strong": 10.0, "moderate": 5.0, "weak": 0.0}
_VOLATILITY_SCORE: dict[str, float] = {"medium": 10.0, "high": 5.0, "low": 0.0}


@dataclass(frozen=True)
class ScoreComponents:
    """Breakdown of a recommendation score.

    Attributes:
        volume_score:     0–30, from the volume ratio.
        macd_score:       0 or 15.
        momentum_score:   0, 5 or 10.
        close_score:      0 or 15.
        change_score:     0 or 5.
        rsi_score:        0, 5 or 15.
        volatility_score: 0, 5 or 10.
    """

    volume_score:     float
    macd_score:       float
    momentum_score:   float
    close_score:      float
    change_score:     float
    rsi_score:        float
    volatility_score: float

    @property
    def total(self) -> float:
        """Unrounded sum of all components."""
        return (
            self.volume_score
            + self.macd_score
            + self.momentum_score
            + self.close_score
            + self.change_score
            + self.rsi_score
            + self.volatility_score
        )

    @property
    def score(self) -> int:
        """Total rounded half-up to an integer."""
        return round_half_up(self.total)


def compute_score(
    volume_ratio:    float,
    macd:            MacdSignal,
    momentum:        Momentum,
    close_near_high: bool,
    change_percent:  float,
    rsi:             int,
    volatility:      Volatility,
) -> ScoreComponents:
    """Compute all score components for one candidate.

    Args:
        volume_ratio:    Latest volume / 20-session average.
        macd:            MACD classification.
        momentum:        Momentum classification.
        close_near_high: Close in the top 30% of the day range.
        change_percent:  Day change in percent.
        rsi:             Integer RSI (already rounded).
        volatility:      Day-range volatility class.

    Returns:
        ScoreComponents with every field populated.
    """
    volume_score = min(_VOLUME_SCORE_CAP, volume_ratio * _VOLUME_SCORE_PER_RATIO)

    if 40 <= rsi <= 70:
        rsi_score = 15.0
    elif rsi > 70:
        rsi_score = 5.0
    else:
        rsi_score = 0.0

    return ScoreComponents(
        volume_score=volume_score,
        macd_score=15.0 if macd == "bullish" else 0.0,
        momentum_score=_MOMENTUM_SCORE[momentum],
        close_score=15.0 if close_near_high else 0.0,
        change_score=5.0 if change_percent > 0 else 0.0,
        rsi_score=rsi_score,
        volatility_score=_VOLATILITY_SCORE[volatility],
    )


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 away from zero for positives.

    Python's ``round()`` uses banker's rounding (``round(2.5) == 2``), which
    would make scores and RSI values drift from the displayed convention.
    """
    return int(math.floor(value + 0.5))
