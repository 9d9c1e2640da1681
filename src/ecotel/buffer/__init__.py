"""Latest-value telemetry buffer with read-time staleness."""

from __future__ import annotations

from ecotel.buffer.records import BufferSnapshot, SignalReading, SignalRecord
from ecotel.buffer.store import TelemetryBuffer

__all__ = [
    "BufferSnapshot",
    "SignalReading",
    "SignalRecord",
    "TelemetryBuffer",
]
