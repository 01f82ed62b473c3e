"""
ASCII terminal formatters for CLI commands.

All formatters take models / dataclasses and return plain multi-line
strings suitable for ``typer.echo()``. No third-party dependencies.

Ranked table
------------
``format_recommendations_table()`` prints one row per recommendation in
rank order::

    Rank  Symbol   Price    Entry   Target     Stop     R:R  RSI  MACD      Vol x  Score  Pattern
    ---------------------------------------------------------------------------------------------
       1  PTT      35.25    35.25    37.00    34.25  1:1.75   66  bullish    2.0x     93  Volume Breakout

Indicators estimated from a single snapshot are marked with ``*`` after the
RSI so readers can tell them apart from history-based values.
"""

from __future__ import annotations

from typing import Sequence

from set_scanner.models.alert import Alert
from set_scanner.models.ledger import LedgerRecord, LedgerStats
from set_scanner.models.recommendation import Recommendation
from set_scanner.pipeline.scan_cycle import ScanResult
from set_scanner.recommendations.sizing import PositionSize
from set_scanner.utils.time_utils import format_market_time


# ── Scan ──────────────────────────────────────────────────────────────────────


def format_recommendations_table(recs: Sequence[Recommendation]) -> str:
    if not recs:
        return "  (no stocks passed the filters)"

    header = (
        f"  {'Rank':>4}  {'Symbol':<8} {'Price':>8} {'Entry':>8} {'Target':>8} "
        f"{'Stop':>8} {'R:R':>7} {'RSI':>4}  {'MACD':<8} {'Vol x':>6} "
        f"{'Score':>5}  Pattern"
    )
    lines = [header, "  " + "-" * (len(header) + 14)]
    for rank, r in enumerate(recs, start=1):
        rsi_str = f"{r.indicators.rsi}{'' if r.indicator_source == 'computed' else '*'}"
        lines.append(
            f"  {rank:>4}  {r.symbol:<8} {r.current_price:>8.2f} {r.entry_point:>8.2f} "
            f"{r.target_price:>8.2f} {r.stop_loss:>8.2f} {r.risk_reward:>7} "
            f"{rsi_str:>4}  {r.indicators.macd:<8} {r.volume_ratio:>5.1f}x "
            f"{r.score:>5}  {r.chart_pattern}"
        )
    return "\n".join(lines)


def format_scan_result(result: ScanResult, utc_offset_hours: int = 7) -> str:
    """Header, filters, ranked table and cycle events."""
    p = result.params
    lines: list[str] = []
    lines.append("")
    lines.append(
        f"=== Scan #{result.cycle_id} at "
        f"{format_market_time(result.finished_at, utc_offset_hours)} ==="
    )
    if not result.completed:
        lines.append("  [SUPERSEDED] a newer scan replaced this one.")
        return "\n".join(lines)

    mode = "sniper" if p.sniper_mode else "standard"
    lines.append(
        f"  Market: {p.market}  Risk: {p.risk_level}  Mode: {mode}  "
        f"Min value: {p.min_volume:,.0f}  Min yield: {p.min_dividend_yield:.1f}%"
    )
    lines.append(
        f"  Quotes: {result.quotes_fetched}  Built: {len(result.recommendations)}  "
        f"Ranked: {len(result.ranked)}  ({result.duration_seconds:.2f}s)"
    )
    lines.append("")
    lines.append(format_recommendations_table(result.ranked))

    if result.new_signals:
        lines.append("")
        lines.append("  New signals: " + ", ".join(r.symbol for r in result.new_signals))
    for t in result.transitions:
        lines.append(
            f"  Ledger: {t.symbol} {t.status} at {(t.record.exit_price or 0.0):.2f} "
            f"({(t.record.percent_change or 0.0):+.2f}%)"
        )
    for a in result.alerts_triggered:
        lines.append(
            f"  Alert: {a.symbol} {a.price:.2f} ({a.alert.condition} {a.alert.target_price:.2f})"
        )
    if result.recorded:
        lines.append(f"  Recorded {len(result.recorded)} new ledger entr{'y' if len(result.recorded) == 1 else 'ies'}.")
    return "\n".join(lines)


# ── Ledger ────────────────────────────────────────────────────────────────────


def format_ledger(
    records: Sequence[LedgerRecord], stats: LedgerStats, utc_offset_hours: int = 7
) -> str:
    lines: list[str] = []
    lines.append("")
    lines.append("=== Paper-Trading Ledger ===")
    lines.append(
        f"  Total: {stats.total}  Open: {stats.active}  Wins: {stats.wins}  "
        f"Losses: {stats.losses}  Win rate: {stats.win_rate:.1f}%"
    )
    if not records:
        lines.append("")
        lines.append("  (ledger is empty; run 'scan' first)")
        return "\n".join(lines)

    header = (
        f"  {'Date':<10}  {'Symbol':<8} {'Entry':>8} {'Target':>8} {'Stop':>8} "
        f"{'Status':<6} {'Exit':>8} {'Change':>8}"
    )
    lines.append("")
    lines.append(header)
    lines.append("  " + "-" * (len(header) - 2))
    for r in records:
        day = r.entry_date.date().isoformat()
        exit_str = f"{r.exit_price:.2f}" if r.exit_price is not None else "-"
        change_str = f"{r.percent_change:+.2f}%" if r.percent_change is not None else "-"
        lines.append(
            f"  {day:<10}  {r.symbol:<8} {r.entry_price:>8.2f} {r.target_price:>8.2f} "
            f"{r.stop_loss:>8.2f} {r.status.value:<6} {exit_str:>8} {change_str:>8}"
        )
    return "\n".join(lines)


# ── Alerts ────────────────────────────────────────────────────────────────────


def format_alerts(alerts: Sequence[Alert]) -> str:
    if not alerts:
        return "  (no price alerts set)"
    lines = [f"  {'Symbol':<8} {'Condition':<9} {'Target':>8}  State"]
    for a in alerts:
        state = "active" if a.is_active else "triggered"
        lines.append(f"  {a.symbol:<8} {a.condition:<9} {a.target_price:>8.2f}  {state}")
    return "\n".join(lines)


# ── Position sizing ───────────────────────────────────────────────────────────


def format_position_size(
    size: PositionSize, entry_price: float, stop_loss: float, balance: float, risk_percent: float
) -> str:
    lines = [
        "",
        "=== Position Size ===",
        f"  Balance: {balance:,.2f}  Risk: {risk_percent:.2f}%  "
        f"Entry: {entry_price:.2f}  Stop: {stop_loss:.2f}",
        f"  Risk amount:       {size.risk_amount:,.2f}",
        f"  Risk per share:    {size.risk_per_share:,.2f}",
        f"  Max shares:        {size.max_shares:,}  ({size.total_investment:,.2f})",
        f"  Board-lot shares:  {size.board_lot_shares:,}  ({size.board_lot_investment:,.2f})",
    ]
    if size.is_over_budget:
        lines.append("  [WARN] Position exceeds the account balance; widen the stop or lower risk.")
    return "\n".join(lines)
