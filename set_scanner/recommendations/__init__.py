"""
Recommendation engine for the SET scanner.

Modules
-------
ticks    : SET tick ladder and half-up tick rounding.
scorer   : additive score components (volume, MACD, momentum, close, RSI ...).
builder  : Quote → Recommendation (prices, classifications, dividend fallback).
ranker   : volume / dividend / risk / signal filters and stable score ranking.
sizing   : fixed-fractional position sizing with board-lot rounding.
"""
