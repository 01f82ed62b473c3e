"""
Filter & rank stage: turns a batch of recommendations into the ranked list
shown to the user and saved to the ledger.

Usage flow
----------
1. filter_recommendations(recs, params, excluded_symbols)
   -> list[Recommendation]  (every predicate passed, input order kept)

2. rank_by_score(recs)
   -> list[Recommendation]  (stable sort, score descending)

``filter_and_rank`` runs both.

Predicates (all must pass)
--------------------------
    volume     volume × current_price ≥ min_volume   (baht traded)
    dividend   dividend_yield ≥ min_dividend_yield
    risk       high: always; medium: volatility ≠ high; low: volatility == low
    signal     standard: volume_ratio ≥ 1.5 or MACD bullish
               sniper:   volume_ratio ≥ 1.2 and above MA20 and
                         50 ≤ RSI ≤ 70 and momentum ≠ weak
    excluded   symbol not in ``excluded_symbols`` (e.g. already OPEN in the
               ledger)

Sniper mode only replaces the signal predicate, so its result is always a
subset of the volume + dividend + risk pool.
"""

from __future__ import annotations

from typing import AbstractSet, Iterable

from set_scanner.models.recommendation import Recommendation
from set_scanner.models.scan import RiskLevel, ScanParams

STANDARD_MIN_VOLUME_RATIO = 1.5
SNIPER_MIN_VOLUME_RATIO = 1.2
SNIPER_RSI_RANGE = (50, 70)


def passes_volume(rec: Recommendation, min_volume: float) -> bool:
    return rec.traded_value >= min_volume


def passes_dividend(rec: Recommendation, min_dividend_yield: float) -> bool:
    return rec.dividend_yield >= min_dividend_yield


def passes_risk(rec: Recommendation, risk_level: RiskLevel) -> bool:
    if risk_level == "high":
        return True
    if risk_level == "medium":
        return rec.volatility != "high"
    return rec.volatility == "low"


def has_standard_signal(rec: Recommendation) -> bool:
    return (
        rec.volume_ratio >= STANDARD_MIN_VOLUME_RATIO
        or rec.indicators.macd == "bullish"
    )


def has_sniper_signal(rec: Recommendation) -> bool:
    """Stricter four-gate signal: volume, trend, RSI band and momentum."""
    lo, hi = SNIPER_RSI_RANGE
    return (
        rec.volume_ratio >= SNIPER_MIN_VOLUME_RATIO
        and rec.indicators.above_ma20
        and lo <= rec.indicators.rsi <= hi
        and rec.momentum != "weak"
    )


def in_base_pool(rec: Recommendation, params: ScanParams) -> bool:
    """Volume, dividend and risk predicates; shared by both modes."""
    return (
        passes_volume(rec, params.min_volume)
        and passes_dividend(rec, params.min_dividend_yield)
        and passes_risk(rec, params.risk_level)
    )


def filter_recommendations(
    recs: Iterable[Recommendation],
    params: ScanParams,
    excluded_symbols: AbstractSet[str] = frozenset(),
) -> list[Recommendation]:
    """Keep recommendations that pass every predicate, in input order.

    Args:
        recs:             Candidate recommendations.
        params:           Scan filters.
        excluded_symbols: Symbols to drop regardless of signals.

    Returns:
        Filtered list; possibly empty.
    """
    signal = has_sniper_signal if params.sniper_mode else has_standard_signal
    return [
        rec
        for rec in recs
        if rec.symbol not in excluded_symbols
        and in_base_pool(rec, params)
        and signal(rec)
    ]


def rank_by_score(recs: Iterable[Recommendation]) -> list[Recommendation]:
    """Sort by score descending. Ties keep their input order."""
    return sorted(recs, key=lambda r: r.score, reverse=True)


def filter_and_rank(
    recs: Iterable[Recommendation],
    params: ScanParams,
    excluded_symbols: AbstractSet[str] = frozenset(),
) -> list[Recommendation]:
    return rank_by_score(filter_recommendations(recs, params, excluded_symbols))
