"""
Operator-channel message formatters (Telegram HTML subset).

Each formatter returns one message string. Only ``<b>`` is used for markup
and every interpolated name is HTML-escaped, so messages are valid for
Telegram's ``parse_mode=HTML`` and still readable as plain text in logs.
"""

from __future__ import annotations

from datetime import datetime
from html import escape
from typing import Sequence

from set_scanner.models.alert import AlertTriggered
from set_scanner.models.ledger import LedgerStatus, LedgerTransition
from set_scanner.models.recommendation import Recommendation
from set_scanner.utils.time_utils import format_market_time

_SEPARATOR = "\n\n------------------\n\n"


def format_new_signals(
    recs: Sequence[Recommendation], now: datetime, utc_offset_hours: int = 7
) -> str:
    """One message listing every new signal with its price levels."""
    header = (
        f"📊 <b>NEW SIGNALS</b> ({format_market_time(now, utc_offset_hours)}) "
        f"- {len(recs)} stock(s)\n\n"
    )
    blocks = [
        f"<b>{escape(r.symbol)}</b> {escape(r.chart_pattern)} (score {r.score})\n"
        f"Price: ฿{r.current_price:.2f}  Vol: {r.volume_ratio:.1f}x avg\n"
        f"Entry: ฿{r.entry_point:.2f}\n"
        f"Target: ฿{r.target_price:.2f}\n"
        f"Stop: ฿{r.stop_loss:.2f}  (R:R {escape(r.risk_reward)})"
        for r in recs
    ]
    return header + _SEPARATOR.join(blocks)


def format_transition(transition: LedgerTransition) -> str:
    record = transition.record
    if record.status == LedgerStatus.WIN:
        icon, verb = "✅", "TARGET HIT"
    else:
        icon, verb = "🛑", "STOP HIT"
    return (
        f"{icon} <b>{verb}: {escape(record.symbol)}</b>\n"
        f"Entry: ฿{record.entry_price:.2f} → Exit: ฿{(record.exit_price or 0.0):.2f}\n"
        f"Result: {(record.percent_change or 0.0):+.2f}%"
    )


def format_alert(event: AlertTriggered) -> str:
    alert = event.alert
    return (
        f"🔔 <b>PRICE ALERT: {escape(alert.symbol)}</b>\n"
        f"Price ฿{event.price:.2f} is {alert.condition} ฿{alert.target_price:.2f}"
    )
