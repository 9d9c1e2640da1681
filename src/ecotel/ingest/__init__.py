"""Bus ingest: signal catalog, frame decoding, counters and the writer loop."""

from __future__ import annotations

from ecotel.ingest.counters import CounterSnapshot, IngestCounters
from ecotel.ingest.decoder import BusFrame, FrameDecoder, SignalEvent
from ecotel.ingest.loop import IngestLoop
from ecotel.ingest.signals import PRESETS, SIGNALS, SignalSpec, resolve_signals

__all__ = [
    "PRESETS",
    "SIGNALS",
    "BusFrame",
    "CounterSnapshot",
    "FrameDecoder",
    "IngestCounters",
    "IngestLoop",
    "SignalEvent",
    "SignalSpec",
    "resolve_signals",
]
