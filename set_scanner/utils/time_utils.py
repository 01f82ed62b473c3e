"""
Time helpers for a market that trades on Bangkok time (ICT, UTC+7).

Timestamps are stored in UTC. Calendar-day questions ("was this symbol
already recorded today?") are answered in the market's local time so a
record made at 06:30 ICT belongs to the same trading day as one made at
16:00 ICT.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

ICT = timezone(timedelta(hours=7), name="ICT")


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


def market_timezone(utc_offset_hours: int = 7) -> timezone:
    """Return the fixed-offset timezone of the market."""
    if utc_offset_hours == 7:
        return ICT
    return timezone(timedelta(hours=utc_offset_hours))


def market_date(moment: datetime, utc_offset_hours: int = 7) -> date:
    """Return the market calendar date of ``moment``.

    Naive datetimes are assumed to be UTC.

    Args:
        moment: Any datetime.
        utc_offset_hours: Market offset from UTC (SET = +7).

    Returns:
        The local calendar date in the market timezone.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(market_timezone(utc_offset_hours)).date()


def format_market_time(moment: datetime, utc_offset_hours: int = 7) -> str:
    """Format ``moment`` as ``HH:MM:SS`` market local time (for messages)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(market_timezone(utc_offset_hours)).strftime("%H:%M:%S")
