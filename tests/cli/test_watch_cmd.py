"""Tests for ``ecotel watch``."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import httpx

from ecotel.cli.main import cli
from ecotel.errors import PollTransportError

if TYPE_CHECKING:
    from click.testing import CliRunner
    from pytest_httpx import HTTPXMock

BASE = "http://buffer.test"


class TestWatchOnce:
    def test_json_lines(self, runner: CliRunner, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=f"{BASE}/api/v1/can/latest",
            json={
                "timestamp": 1,
                "messages": {
                    "speed": {"value": 42.0, "unit": "km/h", "timestamp": 1, "is_stale": False}
                },
            },
        )
        httpx_mock.add_response(
            url=f"{BASE}/api/v1/can/status",
            json={"connected": True, "uptime": 1.0, "message_rate": 10.0, "error_count": 0},
        )
        result = runner.invoke(cli, ["watch", "--url", BASE, "--once", "--format", "json"])
        assert result.exit_code == 0, result.output
        lines = [json.loads(line) for line in result.output.splitlines() if line.strip()]
        by_command = {line["command"]: line["data"] for line in lines}
        assert by_command["watch.latest"]["messages"]["speed"]["value"] == 42.0
        assert by_command["watch.status"]["connected"] is True

    def test_unreachable_server(self, runner: CliRunner, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_exception(httpx.ConnectError("refused"), url=f"{BASE}/api/v1/can/latest")
        httpx_mock.add_exception(httpx.ConnectError("refused"), url=f"{BASE}/api/v1/can/status")
        result = runner.invoke(cli, ["watch", "--url", BASE, "--once", "--format", "json"])
        assert isinstance(result.exception, PollTransportError)
