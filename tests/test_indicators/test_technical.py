"""
Tests for set_scanner/indicators/technical.py.

What we test
------------
calculate_rsi():
  - 50 when fewer than period + 1 prices.
  - 100 for a strictly rising series, 0 for a strictly falling one.
  - Balanced gains and losses give 50.
  - Always within [0, 100].

calculate_ema() / calculate_sma():
  - Empty / None when the series is too short.
  - Hand-computed values; output length len - period + 1.

calculate_macd_signal():
  - "neutral" under 26 closes and under 9 MACD points.
  - Accelerating rise → "bullish", accelerating fall → "bearish".

indicators_from_history():
  - NeedsEstimate without RSI under 15 closes.
  - NeedsEstimate with the Wilder RSI from 15 to 25 closes.
  - ComputedIndicators from 26.

classify_volatility() / estimate_rsi() / estimate_macd_signal():
  - Threshold boundaries, zero price, clamping.
"""

from __future__ import annotations

import pytest

from set_scanner.indicators.technical import (
    calculate_ema,
    calculate_macd_line,
    calculate_macd_signal,
    calculate_rsi,
    calculate_sma,
    classify_volatility,
    estimate_macd_signal,
    estimate_rsi,
    indicators_from_history,
)
from set_scanner.models.quote import ComputedIndicators, NeedsEstimate


def _ramp(n: int, start: float = 10.0, step: float = 0.5) -> list[float]:
    return [start + i * step for i in range(n)]


def _accelerating(n: int, start: float = 10.0, curve: float = 0.02) -> list[float]:
    return [start + curve * i * i for i in range(n)]


# ── RSI ───────────────────────────────────────────────────────────────────────

class TestCalculateRsi:
    def test_short_series_is_neutral(self):
        assert calculate_rsi(_ramp(14)) == 50.0

    def test_empty_series_is_neutral(self):
        assert calculate_rsi([]) == 50.0

    def test_monotonic_rise_is_100(self):
        assert calculate_rsi(_ramp(30)) == 100.0

    def test_monotonic_fall_is_0(self):
        assert calculate_rsi(_ramp(30, start=50.0, step=-0.5)) == 0.0

    def test_balanced_moves_give_50(self):
        prices = [10.0 + (i % 2) for i in range(15)]   # 10, 11, 10, 11 ...
        assert calculate_rsi(prices) == pytest.approx(50.0)

    def test_bounded_on_mixed_series(self):
        prices = [30, 31, 29.5, 32, 33, 31, 30, 34, 35, 33.5, 36, 35, 37, 36.5, 38, 37, 39, 36, 35, 37]
        rsi = calculate_rsi(prices)
        assert 0.0 <= rsi <= 100.0

    def test_wilder_smoothing_applies_after_seed(self):
        # 14 up-moves of 1 then a single drop of 14: avg_gain 13/14, avg_loss 1.
        prices = _ramp(15, start=10.0, step=1.0) + [10.0]
        rsi = calculate_rsi(prices)
        assert rsi == pytest.approx(100 - 100 / (1 + (13 / 14) / 1.0))


# ── EMA / SMA ─────────────────────────────────────────────────────────────────

class TestMovingAverages:
    def test_ema_too_short(self):
        assert calculate_ema([1.0, 2.0], 3) == []

    def test_ema_hand_computed(self):
        # seed = mean(1,2,3) = 2; k = 0.5
        assert calculate_ema([1.0, 2.0, 3.0, 4.0, 5.0], 3) == pytest.approx([2.0, 3.0, 4.0])

    def test_ema_length(self):
        assert len(calculate_ema(_ramp(40), 12)) == 40 - 12 + 1

    def test_ema_of_constant_is_constant(self):
        assert calculate_ema([7.0] * 20, 9) == pytest.approx([7.0] * 12)

    def test_sma_latest_window(self):
        assert calculate_sma([1.0, 2.0, 3.0, 4.0, 5.0], 3) == pytest.approx(4.0)

    def test_sma_too_short(self):
        assert calculate_sma([1.0, 2.0], 3) is None


# ── MACD ──────────────────────────────────────────────────────────────────────

class TestMacdSignal:
    def test_under_26_closes_is_neutral(self):
        assert calculate_macd_signal(_ramp(25)) == "neutral"

    def test_under_9_macd_points_is_neutral(self):
        closes = _ramp(33)
        assert len(calculate_macd_line(closes)) == 8
        assert calculate_macd_signal(closes) == "neutral"

    def test_single_signal_point_uses_trend_rule(self):
        closes = _accelerating(34)
        assert len(calculate_macd_line(closes)) == 9
        assert calculate_macd_signal(closes) == "bullish"

    def test_rising_series_is_bullish(self):
        assert calculate_macd_signal(_accelerating(60)) == "bullish"

    def test_falling_series_is_bearish(self):
        assert calculate_macd_signal(_accelerating(60, start=80.0, curve=-0.02)) == "bearish"


class TestIndicatorsFromHistory:
    def test_too_short_for_rsi(self):
        result = indicators_from_history(_ramp(14))
        assert isinstance(result, NeedsEstimate)
        assert result.rsi is None

    def test_rsi_only_history_keeps_wilder_rsi(self):
        # 19 rising closes then one pullback: RSI stays high even though the
        # last day was red.
        closes = [10.0 + 0.1 * i for i in range(19)] + [11.7]
        result = indicators_from_history(closes)
        assert isinstance(result, NeedsEstimate)
        assert result.rsi == pytest.approx(calculate_rsi(closes))
        assert result.rsi == pytest.approx(100.0 - 100.0 / 14.0, abs=1e-6)

    def test_short_history_needs_estimate(self):
        result = indicators_from_history(_ramp(25))
        assert isinstance(result, NeedsEstimate)
        assert result.rsi == 100.0

    def test_26_closes_are_computed(self):
        result = indicators_from_history(_ramp(26))
        assert isinstance(result, ComputedIndicators)
        assert result.rsi == 100.0
        assert result.macd_signal == "neutral"


# ── Snapshot estimators ───────────────────────────────────────────────────────

class TestClassifyVolatility:
    def test_zero_price_is_medium(self):
        assert classify_volatility(10.0, 5.0, 0.0) == "medium"

    @pytest.mark.parametrize(
        "high, expected",
        [(104.0, "high"), (101.5, "medium"), (101.0, "low"), (100.0, "low")],
    )
    def test_thresholds(self, high, expected):
        assert classify_volatility(high, 100.0, 100.0) == expected


class TestEstimateRsi:
    def test_medium_sensitivity(self):
        assert estimate_rsi(2.0, "medium") == pytest.approx(60.0)

    def test_low_volatility_is_more_sensitive(self):
        assert estimate_rsi(1.0, "low") == pytest.approx(56.0)
        assert estimate_rsi(1.0, "high") == pytest.approx(54.0)

    def test_clamped(self):
        assert estimate_rsi(25.0, "high") == 90.0
        assert estimate_rsi(-25.0, "low") == 10.0


class TestEstimateMacdSignal:
    @pytest.mark.parametrize(
        "change, ratio, expected",
        [
            (0.6, 1.6, "bullish"),
            (2.1, 0.5, "bullish"),
            (2.0, 1.0, "neutral"),
            (0.6, 1.0, "neutral"),
            (-0.6, 1.6, "bearish"),
            (-2.1, 0.1, "bearish"),
            (0.0, 3.0, "neutral"),
        ],
    )
    def test_rules(self, change, ratio, expected):
        assert estimate_macd_signal(change, ratio) == expected
