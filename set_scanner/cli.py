"""
SET Scanner CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Execute the action (scan cycle, ledger query, alert change ...).
  5. Report the result to stdout.

Install and run::

    pip install -e .
    set-scanner --help
    set-scanner init-db
    set-scanner scan --market SET100 --risk medium
    set-scanner scan --fixture --no-db
    set-scanner watch --interval 60
    set-scanner ledger
    set-scanner alert-add PTT 36.50 --condition above
    set-scanner position-size --entry 35.25 --stop 34.25
"""

from __future__ import annotations

import asyncio
import json
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer

app = typer.Typer(
    name="set-scanner",
    help="SET stock scanner: technical signals, ranking and a paper-trading ledger.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from set_scanner.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config) -> None:
    from set_scanner.utils.logging import configure_logging
    configure_logging(config.logging)


@contextmanager
def _open_stores(config, use_db: bool = True, autocommit: bool = False) -> Iterator[tuple]:
    """Yield ``(ledger_repo, alert_repo, fundamentals_repo)``.

    SQLite-backed (schema applied on open) unless ``use_db`` is False, in
    which case in-memory repositories are used and nothing is persisted.
    """
    from set_scanner.db.connection import get_connection
    from set_scanner.db.repositories.alert_repo import SqliteAlertRepository
    from set_scanner.db.repositories.fundamentals_repo import SqliteFundamentalsRepository
    from set_scanner.db.repositories.ledger_repo import SqliteLedgerRepository
    from set_scanner.db.repositories.memory import (
        InMemoryAlertRepository,
        InMemoryFundamentalsRepository,
        InMemoryLedgerRepository,
    )
    from set_scanner.db.schema import apply_schema

    if not use_db:
        yield (
            InMemoryLedgerRepository(),
            InMemoryAlertRepository(),
            InMemoryFundamentalsRepository(),
        )
        return

    with get_connection(
        config.database.db_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
        autocommit=autocommit,
    ) as conn:
        apply_schema(conn)
        yield (
            SqliteLedgerRepository(conn),
            SqliteAlertRepository(conn),
            SqliteFundamentalsRepository(conn),
        )


def _quote_source(config, fixture: bool):
    from set_scanner.ingestion.yahoo_client import FixtureQuoteSource, YahooQuoteClient

    if fixture:
        return FixtureQuoteSource()
    return YahooQuoteClient(config.quote_source)


def _scan_params(config, market, budget, risk, min_volume, min_yield, sniper):
    from set_scanner.models.scan import ScanParams
    from set_scanner.utils.time_utils import market_date, utcnow

    if risk is not None and risk not in ("low", "medium", "high"):
        typer.echo("[ERROR] --risk must be one of: low, medium, high.", err=True)
        raise typer.Exit(code=1)
    try:
        return ScanParams.from_config(
            config.scan,
            scan_date=market_date(utcnow(), config.ledger.utc_offset_hours),
            market=market,
            budget=budget,
            risk_level=risk,
            min_volume=min_volume,
            min_dividend_yield=min_yield,
            sniper_mode=sniper,
        )
    except ValueError as exc:
        typer.echo(f"[ERROR] Invalid scan parameters: {exc}", err=True)
        raise typer.Exit(code=1)


def _build_runner(config, source, stores, record: bool):
    from set_scanner.ledger.alerts import AlertBook
    from set_scanner.ledger.tracker import LedgerTracker
    from set_scanner.notifications.dispatcher import NotificationDispatcher
    from set_scanner.notifications.telegram import build_notifier
    from set_scanner.pipeline.scan_cycle import ScanCycleRunner
    from set_scanner.recommendations.builder import dividend_fallback_from_config

    ledger_repo, alert_repo, fundamentals_repo = stores
    offset = config.ledger.utc_offset_hours
    return ScanCycleRunner(
        quote_source=source,
        ledger=LedgerTracker(ledger_repo, utc_offset_hours=offset),
        alert_book=AlertBook(alert_repo),
        dispatcher=NotificationDispatcher(build_notifier(config.telegram), utc_offset_hours=offset),
        fundamentals=fundamentals_repo,
        dividend_fallback=dividend_fallback_from_config(config.dividends),
        record_ranked=record and config.ledger.record_ranked,
    )


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Initialize the SQLite database and apply the schema.

    Safe to run multiple times; all DDL uses IF NOT EXISTS.
    """
    from set_scanner.db.connection import get_connection
    from set_scanner.db.schema import ALL_TABLE_NAMES, apply_schema

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    with get_connection(
        target_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    ) as conn:
        apply_schema(conn)

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
    show_full: bool = typer.Option(False, "--full", help="Print the full parsed config as JSON."),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:   {config.database.db_path}")
    typer.echo(f"  Market:          {config.scan.market} ({len(config.symbols_for(config.scan.market))} symbols)")
    typer.echo(f"  Risk level:      {config.scan.risk_level}")
    typer.echo(f"  Min value:       {config.scan.min_volume:,.0f}")
    typer.echo(f"  Sniper mode:     {config.scan.sniper_mode}")
    typer.echo(f"  Scan interval:   {config.scan.interval_seconds}s")
    typer.echo(f"  Dividend source: {config.dividends.fallback}")
    typer.echo(f"  Telegram:        {'configured' if config.telegram.is_configured else 'not configured'}")
    typer.echo(f"  Log level:       {config.logging.level}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        dumped = config.model_dump()
        if dumped["telegram"].get("bot_token"):
            dumped["telegram"]["bot_token"] = "***"
        typer.echo(json.dumps(dumped, indent=2, default=str))


@app.command("scan")
def scan(
    market: Optional[str] = typer.Option(None, "--market", "-m", help="Universe: SET, SET100, mai."),
    budget: Optional[float] = typer.Option(None, "--budget", help="Account size in baht."),
    risk: Optional[str] = typer.Option(None, "--risk", help="low | medium | high."),
    min_volume: Optional[float] = typer.Option(None, "--min-volume", help="Minimum traded value (baht)."),
    min_yield: Optional[float] = typer.Option(None, "--min-yield", help="Minimum dividend yield (%)."),
    sniper: Optional[bool] = typer.Option(None, "--sniper/--standard", help="Signal filter mode."),
    fixture: bool = typer.Option(False, "--fixture", help="Use canned quotes (no network)."),
    use_db: bool = typer.Option(True, "--db/--no-db", help="Persist ledger and alerts."),
    record: bool = typer.Option(True, "--record/--no-record", help="Save ranked stocks to the ledger."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Run one scan cycle and print the ranked recommendations."""
    from set_scanner.reporting.formatters import format_scan_result

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    params = _scan_params(config, market, budget, risk, min_volume, min_yield, sniper)
    symbols = config.symbols_for(params.market)

    async def _run():
        with _open_stores(config, use_db=use_db) as stores:
            async with _quote_source(config, fixture) as source:
                runner = _build_runner(config, source, stores, record)
                result = await runner.run(params, symbols)
                await runner.wait_for_notifications()
                return result

    result = asyncio.run(_run())
    typer.echo(format_scan_result(result, config.ledger.utc_offset_hours))
    if result.quotes_fetched == 0:
        typer.echo("[WARN] No quotes were fetched; check network access or use --fixture.", err=True)


@app.command("watch")
def watch(
    market: Optional[str] = typer.Option(None, "--market", "-m", help="Universe: SET, SET100, mai."),
    risk: Optional[str] = typer.Option(None, "--risk", help="low | medium | high."),
    min_volume: Optional[float] = typer.Option(None, "--min-volume", help="Minimum traded value (baht)."),
    min_yield: Optional[float] = typer.Option(None, "--min-yield", help="Minimum dividend yield (%)."),
    sniper: Optional[bool] = typer.Option(None, "--sniper/--standard", help="Signal filter mode."),
    interval: Optional[int] = typer.Option(None, "--interval", help="Seconds between scans."),
    max_cycles: Optional[int] = typer.Option(None, "--max-cycles", help="Stop after N cycles."),
    fixture: bool = typer.Option(False, "--fixture", help="Use canned quotes (no network)."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Auto-scan on an interval until Ctrl-C; new signals, closes and alerts are notified."""
    from set_scanner.reporting.formatters import format_scan_result
    from set_scanner.scheduler import AutoScanner

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    params = _scan_params(config, market, None, risk, min_volume, min_yield, sniper)
    symbols = config.symbols_for(params.market)
    seconds = interval if interval is not None else config.scan.interval_seconds
    if seconds <= 0:
        typer.echo("[ERROR] --interval must be positive.", err=True)
        raise typer.Exit(code=1)

    def _print(result) -> None:
        typer.echo(format_scan_result(result, config.ledger.utc_offset_hours))

    async def _run() -> None:
        with _open_stores(config, autocommit=True) as stores:
            async with _quote_source(config, fixture) as source:
                runner = _build_runner(config, source, stores, record=True)
                scanner = AutoScanner(
                    runner, params, symbols,
                    interval_seconds=seconds, max_cycles=max_cycles, on_result=_print,
                )
                await scanner.start()

    typer.echo(f"Watching {params.market} ({len(symbols)} symbols) every {seconds}s. Ctrl-C to stop.")
    asyncio.run(_run())
    typer.echo("[OK] Auto-scan stopped.")


@app.command("ledger")
def ledger(
    limit: int = typer.Option(50, "--limit", help="Show at most N records (newest first)."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Show paper-trading records and win-rate statistics."""
    from set_scanner.ledger.tracker import LedgerTracker
    from set_scanner.reporting.formatters import format_ledger

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_stores(config) as (ledger_repo, _, _):
        tracker = LedgerTracker(ledger_repo, utc_offset_hours=config.ledger.utc_offset_hours)
        typer.echo(format_ledger(tracker.records()[:limit], tracker.stats()))


@app.command("clear-ledger")
def clear_ledger(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Delete every ledger record."""
    from set_scanner.ledger.tracker import LedgerTracker

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    if not yes and not typer.confirm("Delete all ledger records?"):
        typer.echo("Aborted.")
        raise typer.Exit(code=0)

    with _open_stores(config) as (ledger_repo, _, _):
        removed = LedgerTracker(ledger_repo).clear()
    typer.echo(f"[OK] Removed {removed} ledger record(s).")


@app.command("alert-add")
def alert_add(
    symbol: str = typer.Argument(..., help="Stock symbol, e.g. PTT."),
    price: float = typer.Argument(..., help="Trigger price (baht)."),
    condition: str = typer.Option("above", "--condition", "-c", help="above | below."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Set a price alert (replaces any existing alert for the symbol)."""
    from set_scanner.ledger.alerts import AlertBook

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    if condition not in ("above", "below"):
        typer.echo("[ERROR] --condition must be 'above' or 'below'.", err=True)
        raise typer.Exit(code=1)

    with _open_stores(config) as (_, alert_repo, _):
        try:
            alert = AlertBook(alert_repo).add(symbol, price, condition)
        except ValueError as exc:
            typer.echo(f"[ERROR] Invalid alert: {exc}", err=True)
            raise typer.Exit(code=1)
    typer.echo(f"[OK] Alert set: {alert.symbol} {alert.condition} {alert.target_price:.2f}")


@app.command("alert-remove")
def alert_remove(
    symbol: str = typer.Argument(..., help="Stock symbol."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Remove the price alert for a symbol."""
    from set_scanner.ledger.alerts import AlertBook

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_stores(config) as (_, alert_repo, _):
        removed = AlertBook(alert_repo).remove(symbol)
    if not removed:
        typer.echo(f"[WARN] No alert for {symbol.upper()}.")
        raise typer.Exit(code=1)
    typer.echo(f"[OK] Alert removed: {symbol.upper()}")


@app.command("alerts")
def alerts(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """List price alerts."""
    from set_scanner.ledger.alerts import AlertBook
    from set_scanner.reporting.formatters import format_alerts

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_stores(config) as (_, alert_repo, _):
        typer.echo(format_alerts(AlertBook(alert_repo).alerts()))


@app.command("update-fundamentals")
def update_fundamentals(
    market: Optional[str] = typer.Option(None, "--market", "-m", help="Universe to refresh."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Refresh stored dividend yields from Yahoo Finance quoteSummary."""
    from set_scanner.ingestion.yahoo_client import YahooQuoteClient
    from set_scanner.utils.time_utils import utcnow

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    symbols = config.symbols_for(market or config.scan.market)
    typer.echo(f"Fetching dividend yields for {len(symbols)} symbols...")

    async def _fetch() -> dict[str, float]:
        async with YahooQuoteClient(config.quote_source) as client:
            return await client.fetch_dividend_yields(symbols)

    yields = asyncio.run(_fetch())
    with _open_stores(config) as (_, _, fundamentals_repo):
        written = fundamentals_repo.upsert_dividend_yields(yields, utcnow())

    typer.echo(f"  Stored {written}/{len(symbols)} dividend yield(s).")
    typer.echo("[OK] Fundamentals updated.")


@app.command("position-size")
def position_size(
    entry: float = typer.Option(..., "--entry", help="Planned entry price."),
    stop: float = typer.Option(..., "--stop", help="Stop-loss price."),
    balance: Optional[float] = typer.Option(None, "--balance", help="Account size (default: scan.budget)."),
    risk_percent: float = typer.Option(2.0, "--risk-percent", help="Percent of balance to risk."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Fixed-fractional position size with SET board-lot rounding."""
    from set_scanner.recommendations.sizing import calculate_position_size
    from set_scanner.reporting.formatters import format_position_size

    config = _load_config_or_exit(config_path)
    account = balance if balance is not None else config.scan.budget

    try:
        size = calculate_position_size(account, entry, stop, risk_percent)
    except ValueError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(format_position_size(size, entry, stop, account, risk_percent))


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app()
