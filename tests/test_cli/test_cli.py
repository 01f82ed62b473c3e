"""
Tests for set_scanner/cli.py via typer's CliRunner.

What we test
------------
  - init-db creates the database file.
  - validate-config prints a summary and masks the bot token in --full.
  - scan --fixture works offline with and without the database; ranked
    names land in the ledger, and ledger / clear-ledger read them back.
  - alert-add / alerts / alert-remove round trip; bad input exits 1.
  - position-size prints board-lot sizing; negative input exits 1.
  - watch --fixture --max-cycles 1 runs one cycle and exits.
  - A missing config file exits 1.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from typer.testing import CliRunner

from set_scanner.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_root_logging():
    """The CLI reconfigures the root logger; put it back after each test."""
    root = logging.getLogger()
    saved_level, saved_handlers = root.level, list(root.handlers)
    yield
    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


@pytest.fixture
def config_file(tmp_path) -> Path:
    db_path = (tmp_path / "db" / "scanner.db").as_posix()
    path = tmp_path / "config.toml"
    path.write_text(
        f"""
[database]
db_path = "{db_path}"

[logging]
level = "WARNING"
log_file = ""

[scan]
market = "TEST"
min_volume = 0.0

[telegram]
enabled = false
bot_token = "123:SECRET"

[universes]
TEST = ["PTT", "AOT", "CPALL", "KBANK", "DELTA", "BDMS"]
""",
        encoding="utf-8",
    )
    return path


def _invoke(config_file: Path, *args: str):
    return runner.invoke(app, [*args, "--config", str(config_file)])


class TestSetupCommands:
    def test_init_db(self, config_file, tmp_path):
        result = _invoke(config_file, "init-db")
        assert result.exit_code == 0, result.output
        assert "[OK] Database ready." in result.output
        assert (tmp_path / "db" / "scanner.db").exists()

    def test_validate_config_masks_token(self, config_file):
        result = _invoke(config_file, "validate-config", "--full")
        assert result.exit_code == 0, result.output
        assert "Configuration validated successfully." in result.output
        assert "TEST (6 symbols)" in result.output
        assert "SECRET" not in result.output
        assert '"***"' in result.output

    def test_missing_config(self, tmp_path):
        result = runner.invoke(app, ["scan", "--fixture", "--config", str(tmp_path / "nope.toml")])
        assert result.exit_code == 1


class TestScanCommand:
    def test_fixture_no_db(self, config_file, tmp_path):
        result = _invoke(config_file, "scan", "--fixture", "--no-db")
        assert result.exit_code == 0, result.output
        assert "=== Scan #1" in result.output
        assert "PTT" in result.output
        assert not (tmp_path / "db" / "scanner.db").exists()

    def test_fixture_records_to_ledger(self, config_file):
        assert _invoke(config_file, "scan", "--fixture").exit_code == 0

        ledger = _invoke(config_file, "ledger")
        assert ledger.exit_code == 0, ledger.output
        assert "Total: 3  Open: 3" in ledger.output
        assert "PTT" in ledger.output

        # Open positions are excluded from the next scan.
        second = _invoke(config_file, "scan", "--fixture")
        assert "no stocks passed the filters" in second.output

        cleared = _invoke(config_file, "clear-ledger", "--yes")
        assert "Removed 3 ledger record(s)" in cleared.output

    def test_no_record(self, config_file):
        assert _invoke(config_file, "scan", "--fixture", "--no-record").exit_code == 0
        assert "ledger is empty" in _invoke(config_file, "ledger").output

    def test_sniper_and_risk_flags(self, config_file):
        result = _invoke(config_file, "scan", "--fixture", "--no-db", "--sniper", "--risk", "high")
        assert result.exit_code == 0, result.output
        assert "Risk: high  Mode: sniper" in result.output

    def test_invalid_risk(self, config_file):
        result = _invoke(config_file, "scan", "--fixture", "--no-db", "--risk", "extreme")
        assert result.exit_code == 1

    def test_watch_one_cycle(self, config_file):
        result = _invoke(
            config_file, "watch", "--fixture", "--max-cycles", "1", "--interval", "1"
        )
        assert result.exit_code == 0, result.output
        assert "=== Scan #1" in result.output
        assert "[OK] Auto-scan stopped." in result.output


class TestAlertCommands:
    def test_round_trip(self, config_file):
        added = _invoke(config_file, "alert-add", "ptt", "36.5", "--condition", "above")
        assert added.exit_code == 0, added.output
        assert "[OK] Alert set: PTT above 36.50" in added.output

        listed = _invoke(config_file, "alerts")
        assert "PTT" in listed.output and "active" in listed.output

        assert _invoke(config_file, "alert-remove", "PTT").exit_code == 0
        assert _invoke(config_file, "alert-remove", "PTT").exit_code == 1
        assert "no price alerts" in _invoke(config_file, "alerts").output

    def test_bad_condition(self, config_file):
        result = _invoke(config_file, "alert-add", "PTT", "36.5", "--condition", "sideways")
        assert result.exit_code == 1

    def test_non_positive_price(self, config_file):
        result = _invoke(config_file, "alert-add", "PTT", "0")
        assert result.exit_code == 1


class TestPositionSizeCommand:
    def test_board_lots(self, config_file):
        result = _invoke(
            config_file, "position-size", "--entry", "35.25", "--stop", "34.25",
            "--balance", "100000",
        )
        assert result.exit_code == 0, result.output
        assert "Max shares:        2,000" in result.output

    def test_negative_balance(self, config_file):
        result = _invoke(
            config_file, "position-size", "--entry", "35.25", "--stop", "34.25",
            "--balance=-5",
        )
        assert result.exit_code == 1
