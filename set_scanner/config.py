"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml`` : committed static defaults
  2. ``config/local.toml`` : optional local overrides (gitignored)
  3. ``.env`` : local secrets and env overrides (gitignored)
  4. Environment variables : ``SET_SCANNER_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

The scan cycle, the CLI commands and the scheduler all receive an
``AppConfig`` instance, never raw dicts or individual env var lookups
scattered through the codebase.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite database connection settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/set_scanner.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/scanner.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class QuoteSourceConfig(BaseModel):
    """Yahoo Finance quote source settings."""

    model_config = ConfigDict(frozen=True)

    base_url: str = "https://query1.finance.yahoo.com"
    symbol_suffix: str = ".BK"
    history_range: str = "3mo"
    timeout_seconds: float = 15.0
    retries: int = 2
    retry_backoff_seconds: float = 0.5
    max_concurrency: int = 8
    user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

    @field_validator("max_concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {v}.")
        return v

    @field_validator("retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"retries must be >= 0, got {v}.")
        return v


class ScanConfig(BaseModel):
    """Default scan parameters; every field can be overridden per CLI call."""

    model_config = ConfigDict(frozen=True)

    market: str = "SET100"
    budget: float = 100_000.0
    risk_level: Literal["low", "medium", "high"] = "medium"
    min_volume: float = 10_000_000.0
    min_dividend_yield: float = 0.0
    sniper_mode: bool = False
    interval_seconds: int = 60

    @field_validator("interval_seconds")
    @classmethod
    def validate_interval(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"interval_seconds must be positive, got {v}.")
        return v


class TelegramConfig(BaseModel):
    """Operator notification channel (Telegram Bot API)."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    bot_token: Optional[str] = None
    chat_id: Optional[str] = None
    api_base_url: str = "https://api.telegram.org"
    timeout_seconds: float = 10.0

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.bot_token) and bool(self.chat_id)


class DividendConfig(BaseModel):
    """How to fill in a missing dividend yield.

    ``"zero"`` treats missing data as 0% (fails any positive minimum yield).
    ``"placeholder"`` draws a uniform random value in ``[placeholder_low,
    placeholder_high)``. Legacy behaviour, kept for demos only.
    """

    model_config = ConfigDict(frozen=True)

    fallback: Literal["zero", "placeholder"] = "zero"
    placeholder_low: float = 1.0
    placeholder_high: float = 6.0
    placeholder_seed: Optional[int] = None


class LedgerConfig(BaseModel):
    """Paper-trading ledger settings."""

    model_config = ConfigDict(frozen=True)

    record_ranked: bool = True
    utc_offset_hours: int = 7


DEFAULT_SET_SYMBOLS: list[str] = [
    "PTT", "AOT", "CPALL", "SCC", "ADVANC", "KBANK", "SCB", "BBL", "GULF", "BDMS",
    "TRUE", "DELTA", "BEM", "BTS", "PTTEP", "PTTGC", "IVL", "MINT", "CPN", "INTUCH",
]


class AppConfig(BaseModel):
    """Complete application configuration; the single source of truth.

    It is constructed by ``load_config()`` which merges TOML + .env.
    ``universes`` maps a market identifier (``scan.market``) to its symbols.
    """

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    logging: LoggingConfig = LoggingConfig()
    quote_source: QuoteSourceConfig = QuoteSourceConfig()
    scan: ScanConfig = ScanConfig()
    telegram: TelegramConfig = TelegramConfig()
    dividends: DividendConfig = DividendConfig()
    ledger: LedgerConfig = LedgerConfig()
    universes: dict[str, list[str]] = {"SET": DEFAULT_SET_SYMBOLS}

    def symbols_for(self, market: str) -> list[str]:
        """Return the symbol universe for ``market`` (default SET list if unknown)."""
        return list(self.universes.get(market) or self.universes.get("SET") or DEFAULT_SET_SYMBOLS)


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    # 1. Load .env file (silently skip if missing)
    dotenv_path = root / ".env"
    load_dotenv(dotenv_path=dotenv_path, override=False)

    # 2. Load TOML config
    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    # 3. Apply SET_SCANNER_* environment variable overrides
    raw = _apply_env_overrides(raw)

    # 4. Build and validate AppConfig
    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply SET_SCANNER_* env vars to the raw config dict.

    Supported overrides:
      SET_SCANNER_DB_PATH           → raw["database"]["db_path"]
      SET_SCANNER_LOG_LEVEL         → raw["logging"]["level"]
      SET_SCANNER_TELEGRAM_TOKEN    → raw["telegram"]["bot_token"]
      SET_SCANNER_TELEGRAM_CHAT_ID  → raw["telegram"]["chat_id"]
    """
    if db_path := os.environ.get("SET_SCANNER_DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if log_level := os.environ.get("SET_SCANNER_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if token := os.environ.get("SET_SCANNER_TELEGRAM_TOKEN"):
        raw.setdefault("telegram", {})["bot_token"] = token

    if chat_id := os.environ.get("SET_SCANNER_TELEGRAM_CHAT_ID"):
        raw.setdefault("telegram", {})["chat_id"] = chat_id

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    universes = raw.get("universes") or {"SET": DEFAULT_SET_SYMBOLS}

    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        quote_source=QuoteSourceConfig(**raw.get("quote_source", {})),
        scan=ScanConfig(**raw.get("scan", {})),
        telegram=TelegramConfig(**raw.get("telegram", {})),
        dividends=DividendConfig(**raw.get("dividends", {})),
        ledger=LedgerConfig(**raw.get("ledger", {})),
        universes=universes,
    )
