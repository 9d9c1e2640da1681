"""Tests for the ``ecotel`` command group: help, signals, error handling."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from ecotel.cli.main import cli, main
from ecotel.ingest.signals import SIGNALS

if TYPE_CHECKING:
    from click.testing import CliRunner


class TestHelp:
    def test_root_help_lists_commands(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for name in ("serve", "watch", "signals"):
            assert name in result.output

    def test_serve_help_lists_endpoints(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["serve", "--help"])
        assert result.exit_code == 0
        assert "/api/v1/can/latest" in result.output
        assert "--exit-on-bus-failure" in result.output


class TestSignals:
    def test_json_catalog(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--format", "json", "signals"])
        assert result.exit_code == 0
        envelope = json.loads(result.output)
        assert envelope["ok"] is True
        assert envelope["command"] == "signals"
        assert [s["signal_id"] for s in envelope["data"]] == list(SIGNALS)

    def test_preset_after_subcommand(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["signals", "--preset", "default", "--format", "json"])
        assert result.exit_code == 0
        data = json.loads(result.output)["data"]
        assert {s["signal_id"] for s in data} == {"speed", "battery_voltage", "motor_temp"}
        speed = next(s for s in data if s["signal_id"] == "speed")
        assert speed["bus_id"] == 0x0A0
        assert speed["unit"] == "km/h"

    def test_rich_catalog(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["signals", "--format", "rich"])
        assert result.exit_code == 0
        assert "speed" in result.output


class TestMain:
    def test_known_error_is_reported_as_json(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--format", "json", "signals", "--preset", "warp_factor"])
        assert exc_info.value.code == 1
        envelope = json.loads(capsys.readouterr().out)
        assert envelope["ok"] is False
        assert envelope["error"]["code"] == "config_error"
        assert "warp_factor" in envelope["error"]["message"]

    def test_usage_error_exit_code(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["serve"])
        assert exc_info.value.code == 2
        assert "No bus source" in capsys.readouterr().err

    def test_success_returns_normally(self, capsys: pytest.CaptureFixture[str]) -> None:
        main(["signals", "--format", "json", "--preset", "battery"])
        assert json.loads(capsys.readouterr().out)["ok"] is True
