"""Bus connection status derived from ingest counters.

Everything here is a pure function of a :class:`CounterSnapshot` and the
current time.  Connection state is evaluated lazily on read: there is no
timer flipping the bus to disconnected, a reader simply observes that the
last message is older than the disconnect threshold.

::

    DISCONNECTED ──first forwarded message──▶ CONNECTED
    CONNECTED ──now - last_message_at ≥ threshold──▶ DISCONNECTED
    CONNECTED ──hard bus failure──▶ DISCONNECTED
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

from ecotel.models.api import BusStatus

if TYPE_CHECKING:
    from ecotel.ingest.counters import CounterSnapshot


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


def connection_state(
    counters: CounterSnapshot, now: float, disconnect_threshold: float
) -> ConnectionState:
    """Return the bus connection state as observed at *now*."""
    if counters.bus_failed or counters.last_message_at is None:
        return ConnectionState.DISCONNECTED
    if now - counters.last_message_at >= disconnect_threshold:
        return ConnectionState.DISCONNECTED
    return ConnectionState.CONNECTED


def message_rate(counters: CounterSnapshot, now: float, window: float) -> float:
    """Messages per time unit over the last *window* (or the uptime, if shorter)."""
    span = min(window, now - counters.started_at)
    if span <= 0:
        return 0.0
    return counters.messages_since(now - window) / span


def compute_status(
    counters: CounterSnapshot,
    now: float,
    *,
    disconnect_threshold: float,
    rate_window: float,
) -> BusStatus:
    """Build the bus status payload for the status endpoint."""
    state = connection_state(counters, now, disconnect_threshold)
    return BusStatus(
        connected=state is ConnectionState.CONNECTED,
        uptime=max(0.0, now - counters.started_at),
        message_rate=round(message_rate(counters, now, rate_window), 3),
        error_count=counters.errors_total,
    )
