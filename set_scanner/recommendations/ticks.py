"""
SET price-tick ladder.

Every order price on the Stock Exchange of Thailand must be a multiple of
the tick size for its price band:

    price < 2      0.01
    price < 5      0.02
    price < 10     0.05
    price < 25     0.10
    price < 100    0.25
    price < 200    0.50
    price < 400    1.00
    otherwise      2.00

``round_to_tick`` rounds half-up to the nearest tick and normalises to two
decimals. Each band boundary is itself a multiple of the next band's tick,
so rounding a price up across a boundary still lands on a valid tick of
the new band, and ``round_to_tick(round_to_tick(p)) == round_to_tick(p)``.
"""

from __future__ import annotations

import math

_TICK_LADDER: tuple[tuple[float, float], ...] = (
    (2.0,   0.01),
    (5.0,   0.02),
    (10.0,  0.05),
    (25.0,  0.10),
    (100.0, 0.25),
    (200.0, 0.50),
    (400.0, 1.00),
)
_TOP_TICK = 2.00


def get_tick_size(price: float) -> float:
    """Return the tick size of the band ``price`` falls in."""
    for upper, tick in _TICK_LADDER:
        if price < upper:
            return tick
    return _TOP_TICK


def round_to_tick(price: float) -> float:
    """Round ``price`` half-up to the nearest valid tick (two decimals)."""
    tick = get_tick_size(price)
    # round() strips float noise from the division before the half-up floor.
    steps = math.floor(round(price / tick, 9) + 0.5)
    return round(steps * tick, 2)
