"""Adapters for the bus collaborator that produces raw frames."""

from __future__ import annotations

from ecotel.bus.simulator import SimulatedBusSource
from ecotel.bus.websocket import WebSocketBusSource

__all__ = [
    "SimulatedBusSource",
    "WebSocketBusSource",
]
