"""
Shared pytest fixtures for the SET scanner test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the schema
    applied. Created anew for each test that requests it.
  - ``make_quote`` / ``make_recommendation``: factories with realistic
    defaults; override any field by keyword.
  - ``sample_quote``: the PTT 35.25 snapshot used throughout the suite.
  - ``recording_notifier``: a ``Notifier`` that keeps every message.
  - ``fixed_now``: a fixed UTC timestamp (10:00 ICT on a trading day).
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import Callable, Generator

import pytest

from set_scanner.db.schema import apply_schema
from set_scanner.exceptions import NotificationError
from set_scanner.models.quote import Quote
from set_scanner.models.recommendation import IndicatorBundle, Recommendation


# ── Database fixture ──────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the schema applied."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    apply_schema(conn)
    yield conn
    conn.close()


# ── Time ──────────────────────────────────────────────────────────────────────

@pytest.fixture
def fixed_now() -> datetime:
    """2024-09-16 03:00 UTC == 10:00 ICT."""
    return datetime(2024, 9, 16, 3, 0, 0, tzinfo=timezone.utc)


# ── Domain object factories ───────────────────────────────────────────────────

@pytest.fixture
def make_quote() -> Callable[..., Quote]:
    def _make(**overrides) -> Quote:
        fields = dict(
            symbol="PTT",
            name="PTT PCL",
            price=35.25,
            high=35.50,
            low=34.50,
            open=34.50,
            previous_close=34.50,
            change_percent=(35.25 - 34.50) / 34.50 * 100.0,
            volume=62_000_000,
            avg_volume=31_000_000,
            dividend_yield=5.8,
        )
        fields.update(overrides)
        return Quote(**fields)

    return _make


@pytest.fixture
def sample_quote(make_quote) -> Quote:
    """PTT at 35.25, +2.17% on 2x volume, closing near the day high."""
    return make_quote()


@pytest.fixture
def make_recommendation() -> Callable[..., Recommendation]:
    def _make(**overrides) -> Recommendation:
        indicator_fields = dict(
            rsi=60, macd="bullish", volume_change=200, above_ma20=True, above_ma50=True
        )
        indicator_fields.update(overrides.pop("indicators", {}))
        fields = dict(
            symbol="PTT",
            name="PTT PCL",
            current_price=35.25,
            entry_point=35.25,
            target_price=37.00,
            stop_loss=34.25,
            risk_reward="1:1.75",
            holding_period="1-2 days",
            technical_setup="MACD bullish",
            indicators=IndicatorBundle(**indicator_fields),
            chart_pattern="Trend Continuation",
            volume=62_000_000,
            avg_volume=31_000_000,
            volatility="medium",
            momentum="strong",
            dividend_yield=5.8,
            score=90,
        )
        fields.update(overrides)
        return Recommendation(**fields)

    return _make


# ── Notifications ─────────────────────────────────────────────────────────────

class RecordingNotifier:
    """Collects sent messages; raises ``NotificationError`` when ``fail`` is set."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.messages: list[str] = []

    async def send(self, text: str) -> None:
        if self.fail:
            raise NotificationError("channel down")
        self.messages.append(text)


@pytest.fixture
def recording_notifier() -> RecordingNotifier:
    return RecordingNotifier()
