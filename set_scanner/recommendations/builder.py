"""
Recommendation builder: one ``Quote`` → one ``Recommendation``.

Steps
-----
1. volume_ratio = volume / avg_volume (1.0 when the average is unknown).
2. RSI and MACD come from ``quote.indicators``:
     ComputedIndicators → use the history-based values.
     NeedsEstimate      → ``estimate_macd_signal``, and ``estimate_rsi``
                          unless a history RSI came along.
   RSI is rounded half-up to an integer once; pattern, score and the
   ranker's filters all read that integer.
3. close_position = (price − low) / (high − low), 0.5 on a zero range.
   close_near_high = close_position > 0.7.
4. Momentum, chart pattern, holding period and setup text are pure
   classifications of the values above.
5. Entry / target (+5%) / stop (−3%) are snapped to the SET tick ladder.
6. Score via ``scorer.compute_score``.
7. Dividend yield is the quote's value when present and nonzero, else the
   injected ``dividend_fallback(symbol)``.

``build_recommendation`` is total over well-formed quotes: a zero price or
a zero day range never raises.
"""

from __future__ import annotations

import logging
import random
from typing import Callable, Iterable, Optional, Sequence

from set_scanner.config import DividendConfig
from set_scanner.indicators.technical import (
    calculate_sma,
    classify_volatility,
    estimate_macd_signal,
    estimate_rsi,
)
from set_scanner.models.quote import (
    ComputedIndicators,
    MacdSignal,
    Momentum,
    Quote,
)
from set_scanner.models.recommendation import IndicatorBundle, Recommendation
from set_scanner.recommendations.scorer import compute_score, round_half_up
from set_scanner.recommendations.ticks import round_to_tick

logger = logging.getLogger(__name__)

TARGET_MULTIPLIER = 1.05
STOP_MULTIPLIER = 0.97
CLOSE_NEAR_HIGH_THRESHOLD = 0.7

_HOLDING_PERIOD: dict[str, str] = {
    "strong":   "1-2 days",
    "moderate": "2-3 days",
    "weak":     "3-5 days",
}

DividendFallback = Callable[[str], float]


# ── Dividend fallbacks ────────────────────────────────────────────────────────


def zero_dividend_fallback(symbol: str) -> float:
    """Unknown dividend yield → 0.0."""
    return 0.0


class RandomDividendFallback:
    """Uniform random placeholder yield in ``[low, high)``.

    Only for demos against data sources that never report dividends. Seeded,
    so a given seed and call order always reproduce the same yields.
    """

    def __init__(self, low: float = 1.0, high: float = 6.0, seed: Optional[int] = None) -> None:
        if high < low:
            raise ValueError(f"high ({high}) must be >= low ({low}).")
        self.low = low
        self.high = high
        self._rng = random.Random(seed)

    def __call__(self, symbol: str) -> float:
        return round(self._rng.uniform(self.low, self.high), 2)


def dividend_fallback_from_config(config: DividendConfig) -> DividendFallback:
    """Return the fallback selected by ``[dividends].fallback``."""
    if config.fallback == "placeholder":
        logger.warning(
            "Placeholder dividend yields enabled; unknown yields will be random "
            "values in [%.1f, %.1f).",
            config.placeholder_low,
            config.placeholder_high,
        )
        return RandomDividendFallback(
            low=config.placeholder_low,
            high=config.placeholder_high,
            seed=config.placeholder_seed,
        )
    return zero_dividend_fallback


# ── Classifications ───────────────────────────────────────────────────────────


def close_position(price: float, high: float, low: float) -> float:
    """Where the price sits in the day range: 0 at the low, 1 at the high."""
    day_range = high - low
    if day_range <= 0:
        return 0.5
    return (price - low) / day_range


def classify_momentum(
    change_percent: float, volume_ratio: float, close_near_high: bool
) -> Momentum:
    if change_percent > 1.5 and volume_ratio > 1.2 and close_near_high:
        return "strong"
    if change_percent > 0 and volume_ratio > 1.0:
        return "moderate"
    return "weak"


def detect_chart_pattern(
    change_percent: float, volume_ratio: float, rsi: int, close_near_high: bool
) -> str:
    """Label the day's price action. First matching rule wins."""
    if change_percent > 2 and volume_ratio > 2.0 and close_near_high:
        return "Volume Breakout"
    if change_percent > 1 and volume_ratio > 1.2 and not close_near_high:
        return "Bull Flag Candidate"
    if rsi < 30 and change_percent > 0:
        return "Oversold Bounce"
    if change_percent > 0 and 50 < rsi < 70:
        return "Trend Continuation"
    if volume_ratio > 1.5 and change_percent < 0:
        return "Distribution / Pullback"
    if abs(change_percent) < 0.5 and volume_ratio < 0.8:
        return "Consolidation"
    return "Normal Fluctuation"


def describe_technical_setup(
    change_percent: float, volume_ratio: float, rsi: int, macd: MacdSignal
) -> str:
    """Join the active signal phrases with ``" + "``."""
    signals: list[str] = []
    if volume_ratio > 1.5:
        signals.append(f"Volume surge {round_half_up(volume_ratio * 100)}%")
    if macd == "bullish":
        signals.append("MACD bullish")
    if change_percent > 1:
        signals.append("Upward momentum")
    if 40 <= rsi <= 60:
        signals.append("Neutral RSI")
    return " + ".join(signals) if signals else "Awaiting confirmation"


def holding_period_for(momentum: Momentum) -> str:
    return _HOLDING_PERIOD[momentum]


def format_risk_reward(entry: float, target: float, stop: float) -> str:
    """``"1:X.XX"`` reward per unit of risk, or ``"1:0"`` when risk ≤ 0."""
    risk = entry - stop
    if risk <= 0:
        return "1:0"
    return f"1:{(target - entry) / risk:.2f}"


def moving_average_flags(
    price: float,
    closes: Sequence[float],
    change_percent: float,
    volume_ratio: float,
) -> tuple[bool, bool]:
    """(above_ma20, above_ma50).

    Uses the real SMA when ``closes`` is long enough; otherwise falls back to
    the snapshot approximation (up day for MA20; up day on 1.2× volume for
    MA50).
    """
    sma20 = calculate_sma(closes, 20)
    sma50 = calculate_sma(closes, 50)
    above_ma20 = price > sma20 if sma20 is not None else change_percent > 0
    above_ma50 = (
        price > sma50
        if sma50 is not None
        else change_percent > 0 and volume_ratio > 1.2
    )
    return above_ma20, above_ma50


def resolve_dividend_yield(quote: Quote, dividend_fallback: DividendFallback) -> float:
    if quote.dividend_yield:
        return quote.dividend_yield
    return dividend_fallback(quote.symbol)


# ── Builder ───────────────────────────────────────────────────────────────────


def build_recommendation(
    quote: Quote,
    dividend_fallback: DividendFallback = zero_dividend_fallback,
) -> Recommendation:
    """Build the recommendation for one quote.

    Args:
        quote:             Frozen market snapshot.
        dividend_fallback: Called with the symbol when the quote has no
                           (or a zero) dividend yield.

    Returns:
        A fully populated Recommendation.
    """
    cp = quote.change_percent
    vr = quote.volume_ratio
    volatility = classify_volatility(quote.high, quote.low, quote.price)

    indicators = quote.indicators
    if isinstance(indicators, ComputedIndicators):
        raw_rsi = indicators.rsi
        macd = indicators.macd_signal
        source = "computed"
    else:
        raw_rsi = indicators.rsi if indicators.rsi is not None else estimate_rsi(cp, volatility)
        macd = estimate_macd_signal(cp, vr)
        source = "estimated"
    rsi = max(0, min(100, round_half_up(raw_rsi)))

    near_high = close_position(quote.price, quote.high, quote.low) > CLOSE_NEAR_HIGH_THRESHOLD
    momentum = classify_momentum(cp, vr, near_high)

    entry = round_to_tick(quote.price)
    target = round_to_tick(quote.price * TARGET_MULTIPLIER)
    stop = round_to_tick(quote.price * STOP_MULTIPLIER)

    above_ma20, above_ma50 = moving_average_flags(quote.price, quote.closes, cp, vr)

    components = compute_score(
        volume_ratio=vr,
        macd=macd,
        momentum=momentum,
        close_near_high=near_high,
        change_percent=cp,
        rsi=rsi,
        volatility=volatility,
    )

    return Recommendation(
        symbol=quote.symbol,
        name=quote.name or quote.symbol,
        current_price=quote.price,
        entry_point=entry,
        target_price=target,
        stop_loss=stop,
        risk_reward=format_risk_reward(entry, target, stop),
        holding_period=holding_period_for(momentum),
        technical_setup=describe_technical_setup(cp, vr, rsi, macd),
        indicators=IndicatorBundle(
            rsi=rsi,
            macd=macd,
            volume_change=round_half_up(vr * 100),
            above_ma20=above_ma20,
            above_ma50=above_ma50,
        ),
        chart_pattern=detect_chart_pattern(cp, vr, rsi, near_high),
        volume=quote.volume,
        avg_volume=quote.avg_volume,
        volatility=volatility,
        momentum=momentum,
        dividend_yield=resolve_dividend_yield(quote, dividend_fallback),
        score=components.score,
        indicator_source=source,
    )


def build_recommendations(
    quotes: Iterable[Quote],
    dividend_fallback: DividendFallback = zero_dividend_fallback,
) -> list[Recommendation]:
    """Build one recommendation per quote, preserving input order."""
    return [build_recommendation(q, dividend_fallback) for q in quotes]
