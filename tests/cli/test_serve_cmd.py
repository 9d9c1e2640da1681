"""Tests for ``ecotel serve`` option validation and helpers."""

from __future__ import annotations

import asyncio
import functools
import logging
import socket
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import click
import pytest

from ecotel.buffer.store import TelemetryBuffer
from ecotel.bus.simulator import SimulatedBusSource
from ecotel.cli.main import cli
from ecotel.cli.serve import _build_source, _check_port, _on_ingest_done, _safe_uvicorn_serve
from ecotel.clock import ManualClock
from ecotel.errors import ConfigError
from ecotel.ingest.loop import IngestLoop
from ecotel.models.config import AppSettings

if TYPE_CHECKING:
    from click.testing import CliRunner

    from ecotel.ingest.decoder import BusFrame


class TestServeValidation:
    def test_requires_a_bus_source(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["serve"])
        assert result.exit_code == 2
        assert "No bus source" in result.output

    def test_bus_url_and_simulate_conflict(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["serve", "--simulate", "--bus-url", "ws://x:1"])
        assert result.exit_code == 2
        assert "cannot both be set" in result.output

    def test_bus_url_from_environment_conflicts_too(
        self, runner: CliRunner, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("ECOTEL_BUS_URL", "ws://bridge:8765")
        result = runner.invoke(cli, ["serve", "--simulate"])
        assert result.exit_code == 2

    def test_unknown_signal_is_config_error(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["serve", "--simulate", "--signals", "speed,bogus"])
        assert isinstance(result.exception, ConfigError)

    def test_invalid_threshold_is_config_error(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["serve", "--simulate", "--stale-threshold", "-1"])
        assert isinstance(result.exception, ConfigError)
        assert "stale_threshold" in str(result.exception)


class TestCheckPort:
    def test_free_port_passes(self) -> None:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("127.0.0.1", 0))
            free_port = s.getsockname()[1]
        _check_port("127.0.0.1", free_port)

    def test_occupied_port_raises(self) -> None:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("127.0.0.1", 0))
            occupied = s.getsockname()[1]
            s.listen(1)
            with pytest.raises(click.UsageError, match="already in use"):
                _check_port("127.0.0.1", occupied)


class TestSafeUvicornServe:
    async def test_bind_failure_becomes_os_error(self) -> None:
        server = AsyncMock()
        server.serve = AsyncMock(side_effect=SystemExit(1))
        with pytest.raises(OSError, match="port 5000"):
            await _safe_uvicorn_serve(server, 5000)

    async def test_clean_exit_returns(self) -> None:
        server = AsyncMock()
        server.serve = AsyncMock(side_effect=SystemExit(0))
        await _safe_uvicorn_serve(server, 5000)


class _CrashingSource:
    def __aiter__(self) -> _CrashingSource:
        return self

    async def __anext__(self) -> BusFrame:
        raise RuntimeError("decoder bug")


class TestIngestCrash:
    async def test_crash_marks_bus_failed_and_is_logged(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        ingest = IngestLoop(TelemetryBuffer(), _CrashingSource(), clock=ManualClock(0.0))
        task = asyncio.create_task(ingest.run())
        task.add_done_callback(functools.partial(_on_ingest_done, ingest))
        with caplog.at_level(logging.ERROR, logger="ecotel.cli.serve"):
            await asyncio.wait({task})
            await asyncio.sleep(0)
        snap = ingest.counters.snapshot()
        assert snap.bus_failed is True
        assert snap.bus_error == "ingest crashed: RuntimeError: decoder bug"
        assert "Ingest loop crashed" in caplog.text

    async def test_clean_end_leaves_reason_alone(self) -> None:
        ingest = IngestLoop(TelemetryBuffer(), SimulatedBusSource(max_frames=0))
        task = asyncio.create_task(ingest.run())
        task.add_done_callback(functools.partial(_on_ingest_done, ingest))
        await task
        await asyncio.sleep(0)
        assert ingest.counters.snapshot().bus_error == "bus closed"


class TestBuildSource:
    def test_simulated(self) -> None:
        from ecotel.bus.simulator import SimulatedBusSource

        source = _build_source(AppSettings(), simulate=True, sim_rate=5.0)
        assert isinstance(source, SimulatedBusSource)

    def test_websocket(self) -> None:
        from ecotel.bus.websocket import WebSocketBusSource

        settings = AppSettings(bus_url="ws://bridge:8765")
        source = _build_source(settings, simulate=False, sim_rate=1.0)
        assert isinstance(source, WebSocketBusSource)
        assert source.url == "ws://bridge:8765"
