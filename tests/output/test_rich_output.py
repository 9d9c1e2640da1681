from __future__ import annotations

from io import StringIO

from rich.console import Console

from ecotel.ingest.signals import PRESETS, SIGNALS
from ecotel.models.api import BusStatus, LatestValues, SignalPayload
from ecotel.output.rich_output import RichOutput


def _make_console() -> tuple[Console, StringIO]:
    """Return a ``(Console, buffer)`` pair for capturing Rich output."""
    buf = StringIO()
    console = Console(file=buf, force_terminal=True, width=100)
    return console, buf


def _values(*, stale: bool = False) -> LatestValues:
    return LatestValues(
        timestamp=10_000,
        messages={
            "speed": SignalPayload(value=42.0, unit="km/h", timestamp=9_900, is_stale=stale),
            "battery_voltage": SignalPayload(
                value=12.4, unit="V", timestamp=9_950, is_stale=False
            ),
        },
    )


class TestLatestValues:
    def test_renders_table(self) -> None:
        console, buf = _make_console()
        RichOutput(console).latest_values(_values())
        output = buf.getvalue()

        assert "speed" in output
        assert "42.00" in output
        assert "km/h" in output
        assert "battery_voltage" in output
        assert "12.40" in output
        assert "100" in output  # age of speed in ms

    def test_marks_stale(self) -> None:
        console, buf = _make_console()
        RichOutput(console).latest_values(_values(stale=True))
        assert "stale" in buf.getvalue()

    def test_empty(self) -> None:
        console, buf = _make_console()
        RichOutput(console).latest_values(LatestValues(timestamp=0))
        assert "No signals observed yet" in buf.getvalue()


class TestBusStatus:
    def test_connected(self) -> None:
        console, buf = _make_console()
        status = BusStatus(connected=True, uptime=12.0, message_rate=30.0, error_count=2)
        RichOutput(console).bus_status(status)
        output = buf.getvalue()
        assert "connected" in output
        assert "30.0" in output
        assert "msg/s" in output
        assert "errors" in output

    def test_status_line_disconnected(self) -> None:
        status = BusStatus(connected=False, uptime=0.0, message_rate=0.0, error_count=0)
        assert "[red]disconnected[/red]" in RichOutput.status_line(status)


class TestSignalCatalog:
    def test_lists_signals_with_bus_ids(self) -> None:
        console, buf = _make_console()
        RichOutput(console).signal_catalog(SIGNALS[s] for s in PRESETS["default"])
        output = buf.getvalue()
        assert "speed" in output
        assert "0x0A0" in output
        assert "motor_temp" in output
        assert "motor_rpm" not in output


class TestGeneric:
    def test_error(self) -> None:
        console, buf = _make_console()
        RichOutput(console).error("Port 5000 is already in use.")
        assert "Error:" in buf.getvalue()
        assert "already in use" in buf.getvalue()
