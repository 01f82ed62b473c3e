"""
Technical indicators over daily close series. Pure functions, no I/O.

Two modes
---------
**History mode** (preferred). The quote source supplies daily closes
(oldest → newest) and the indicators are computed for real:

    calculate_rsi(closes, period=14)   Wilder RSI.
    calculate_ema(values, period)      EMA seeded with the SMA of the first
                                       ``period`` values.
    calculate_macd_signal(closes)      EMA12 − EMA26 against its EMA9 signal
                                       line; fresh cross first, trend second.
    calculate_sma(values, period)      Latest simple moving average.

**Snapshot mode** (fallback). With fewer than ``MIN_MACD_CLOSES`` closes a
true MACD cannot be formed, so the quote is tagged ``NeedsEstimate``. It
still carries the Wilder RSI when at least ``MIN_RSI_CLOSES`` closes exist;
the builder estimates whatever is missing with:

    estimate_rsi(change_percent, volatility)
        50 + change_percent × sensitivity, clamped to [10, 90].
        Sensitivity is 4 / 5 / 6 for high / medium / low volatility, so a
        1% move in a quiet stock counts for more than in a wild one.
    estimate_macd_signal(change_percent, volume_ratio)
        bullish on a > 0.5% move with > 1.5× volume, or any > 2% move;
        bearish symmetric; neutral otherwise.

Only ``indicators_from_history()`` decides between the two modes.

Volatility
----------
``classify_volatility(high, low, price)`` classifies the day range as a
percent of price: ≥ 4.0 high, ≥ 1.5 medium, else low. A zero price yields
``"medium"`` instead of dividing by zero.
"""

from __future__ import annotations

from typing import Optional, Sequence

from set_scanner.models.quote import (
    ComputedIndicators,
    MacdSignal,
    NeedsEstimate,
    Volatility,
)

RSI_PERIOD = 14
NEUTRAL_RSI = 50.0

MACD_FAST = 12
MACD_SLOW = 26
MACD_SIGNAL = 9
MIN_MACD_CLOSES = MACD_SLOW
MIN_RSI_CLOSES = RSI_PERIOD + 1

HIGH_VOLATILITY_RANGE_PCT = 4.0
MEDIUM_VOLATILITY_RANGE_PCT = 1.5

_RSI_SENSITIVITY: dict[str, float] = {"high": 4.0, "medium": 5.0, "low": 6.0}
_ESTIMATED_RSI_FLOOR = 10.0
_ESTIMATED_RSI_CEILING = 90.0


# ── History mode ──────────────────────────────────────────────────────────────


def calculate_rsi(prices: Sequence[float], period: int = RSI_PERIOD) -> float:
    """Wilder's Relative Strength Index of a close series.

    Args:
        prices: Closes, oldest → newest.
        period: Look-back window (default 14).

    Returns:
        RSI in [0, 100]; ``NEUTRAL_RSI`` (50) when fewer than ``period + 1``
        prices are available; 100 when the smoothed average loss is zero.
    """
    if len(prices) < period + 1:
        return NEUTRAL_RSI

    deltas = [prices[i] - prices[i - 1] for i in range(1, len(prices))]

    seed = deltas[:period]
    avg_gain = sum(d for d in seed if d > 0) / period
    avg_loss = sum(-d for d in seed if d < 0) / period

    for delta in deltas[period:]:
        gain = delta if delta > 0 else 0.0
        loss = -delta if delta < 0 else 0.0
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period

    if avg_loss == 0:
        return 100.0
    rsi = 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)
    return _clamp(rsi, 0.0, 100.0)


def calculate_ema(values: Sequence[float], period: int) -> list[float]:
    """Exponential moving average series.

    The first element is the SMA of ``values[:period]``; each later element
    applies ``ema = value * k + ema * (1 - k)`` with ``k = 2 / (period + 1)``.

    Returns:
        ``len(values) - period + 1`` EMA values, or ``[]`` when
        ``len(values) < period``.
    """
    if period <= 0 or len(values) < period:
        return []

    k = 2.0 / (period + 1)
    ema = sum(values[:period]) / period
    series = [ema]
    for value in values[period:]:
        ema = value * k + ema * (1.0 - k)
        series.append(ema)
    return series


def calculate_sma(values: Sequence[float], period: int) -> Optional[float]:
    """Latest simple moving average, or ``None`` with fewer than ``period`` values."""
    if period <= 0 or len(values) < period:
        return None
    return sum(values[-period:]) / period


def calculate_macd_line(closes: Sequence[float]) -> list[float]:
    """MACD line (EMA12 − EMA26) aligned on the EMA26 series.

    The EMA12 series is ``MACD_SLOW - MACD_FAST`` (14) samples longer, so
    ``macd[i] = ema12[i + 14] - ema26[i]``.
    """
    ema_fast = calculate_ema(closes, MACD_FAST)
    ema_slow = calculate_ema(closes, MACD_SLOW)
    offset = MACD_SLOW - MACD_FAST
    return [ema_fast[i + offset] - ema_slow[i] for i in range(len(ema_slow))]


def calculate_macd_signal(closes: Sequence[float]) -> MacdSignal:
    """Classify the MACD of a close series.

    Rules (first match wins):
      1. Fewer than 26 closes, or fewer than 9 MACD points → ``"neutral"``.
      2. MACD crossed above its signal line on the last bar → ``"bullish"``.
      3. MACD crossed below its signal line on the last bar → ``"bearish"``.
      4. MACD above signal and above zero → ``"bullish"``.
      5. MACD below signal and below zero → ``"bearish"``.
      6. Otherwise → ``"neutral"``.
    """
    if len(closes) < MIN_MACD_CLOSES:
        return "neutral"

    macd_line = calculate_macd_line(closes)
    if len(macd_line) < MACD_SIGNAL:
        return "neutral"

    signal_line = calculate_ema(macd_line, MACD_SIGNAL)
    macd_now, signal_now = macd_line[-1], signal_line[-1]

    if len(signal_line) >= 2:
        macd_prev, signal_prev = macd_line[-2], signal_line[-2]
        if macd_now > signal_now and macd_prev <= signal_prev:
            return "bullish"
        if macd_now < signal_now and macd_prev >= signal_prev:
            return "bearish"

    if macd_now > signal_now and macd_now > 0:
        return "bullish"
    if macd_now < signal_now and macd_now < 0:
        return "bearish"
    return "neutral"


def indicators_from_history(
    closes: Sequence[float],
) -> ComputedIndicators | NeedsEstimate:
    """Pick the indicator mode for a quote.

    Returns ``ComputedIndicators`` when at least ``MIN_MACD_CLOSES`` closes
    are available, else ``NeedsEstimate``. The latter carries the history
    RSI from ``MIN_RSI_CLOSES`` closes on.
    """
    if len(closes) < MIN_RSI_CLOSES:
        return NeedsEstimate()
    if len(closes) < MIN_MACD_CLOSES:
        return NeedsEstimate(rsi=calculate_rsi(closes))
    return ComputedIndicators(
        rsi=calculate_rsi(closes),
        macd_signal=calculate_macd_signal(closes),
    )


# ── Snapshot mode ─────────────────────────────────────────────────────────────


def classify_volatility(high: float, low: float, price: float) -> Volatility:
    """Classify the day range as a percent of price."""
    if price == 0:
        return "medium"
    range_pct = (high - low) / price * 100.0
    if range_pct >= HIGH_VOLATILITY_RANGE_PCT:
        return "high"
    if range_pct >= MEDIUM_VOLATILITY_RANGE_PCT:
        return "medium"
    return "low"


def estimate_rsi(change_percent: float, volatility: Volatility) -> float:
    """Approximate RSI from a single day's change. Snapshot mode only."""
    sensitivity = _RSI_SENSITIVITY.get(volatility, _RSI_SENSITIVITY["medium"])
    return _clamp(
        NEUTRAL_RSI + change_percent * sensitivity,
        _ESTIMATED_RSI_FLOOR,
        _ESTIMATED_RSI_CEILING,
    )


def estimate_macd_signal(change_percent: float, volume_ratio: float) -> MacdSignal:
    """Approximate the MACD classification from a single day. Snapshot mode only."""
    if (change_percent > 0.5 and volume_ratio > 1.5) or change_percent > 2.0:
        return "bullish"
    if (change_percent < -0.5 and volume_ratio > 1.5) or change_percent < -2.0:
        return "bearish"
    return "neutral"


# ── Helper ────────────────────────────────────────────────────────────────────

def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))
