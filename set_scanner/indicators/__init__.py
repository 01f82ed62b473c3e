"""
Indicator engine: RSI, EMA, SMA, MACD classification and volatility.

Modules
-------
technical : pure functions over close series (history mode) plus the
            snapshot-only estimators used when history is missing.
"""
