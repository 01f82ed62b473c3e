"""
Fixed-fractional position sizing.

    risk_amount    = balance × risk_percent / 100
    risk_per_share = max(0.01, entry − stop)
    max_shares     = floor(risk_amount / risk_per_share)
    board_lot      = floor(max_shares / 100) × 100

SET equities trade in board lots of 100 shares; smaller quantities go to
the odd-lot board. ``is_over_budget`` flags sizes whose notional exceeds
the account balance (a tight stop on an expensive stock can do that).
"""

from __future__ import annotations

import math
from dataclasses import dataclass

BOARD_LOT = 100
MIN_RISK_PER_SHARE = 0.01
DEFAULT_RISK_PERCENT = 2.0


@dataclass(frozen=True)
class PositionSize:
    """Result of a sizing calculation.

    Attributes:
        risk_amount:          Baht the trade may lose at the stop.
        risk_per_share:       Entry − stop, floored at 0.01.
        max_shares:           Shares that risk exactly ``risk_amount``.
        total_investment:     ``max_shares × entry``.
        board_lot_shares:     ``max_shares`` rounded down to a board lot.
        board_lot_investment: ``board_lot_shares × entry``.
        is_over_budget:       ``total_investment > balance``.
    """

    risk_amount:          float
    risk_per_share:       float
    max_shares:           int
    total_investment:     float
    board_lot_shares:     int
    board_lot_investment: float
    is_over_budget:       bool


def calculate_position_size(
    balance: float,
    entry_price: float,
    stop_loss: float,
    risk_percent: float = DEFAULT_RISK_PERCENT,
) -> PositionSize:
    """Size a position so that hitting ``stop_loss`` loses ``risk_percent`` of ``balance``.

    Raises:
        ValueError: On a negative balance, entry price or risk percent.
    """
    if balance < 0 or entry_price < 0 or risk_percent < 0:
        raise ValueError("balance, entry_price and risk_percent must be non-negative.")

    risk_amount = balance * risk_percent / 100.0
    risk_per_share = max(MIN_RISK_PER_SHARE, entry_price - stop_loss)
    max_shares = math.floor(risk_amount / risk_per_share)
    total_investment = max_shares * entry_price
    board_lot_shares = (max_shares // BOARD_LOT) * BOARD_LOT

    return PositionSize(
        risk_amount=round(risk_amount, 2),
        risk_per_share=round(risk_per_share, 4),
        max_shares=max_shares,
        total_investment=round(total_investment, 2),
        board_lot_shares=board_lot_shares,
        board_lot_investment=round(board_lot_shares * entry_price, 2),
        is_over_budget=total_investment > balance,
    )
