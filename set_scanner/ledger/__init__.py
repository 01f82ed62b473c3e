"""
Paper-trading ledger and price alerts.

Modules
-------
tracker : OPEN → WIN / LOSS settlement, per-day de-duplication, statistics.
alerts  : per-symbol price alerts checked against fresh prices.
"""
