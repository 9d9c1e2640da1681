"""Pydantic v2 models for the two polling endpoints.

Shared by the server (serialization) and the poller (validation of what
comes back over the wire).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from ecotel.buffer.records import BufferSnapshot
    from ecotel.clock import Clock


class SignalPayload(BaseModel):
    """One signal in the latest-values response."""

    model_config = ConfigDict(extra="ignore")

    value: float
    unit: str
    timestamp: int
    """``observed_at`` in milliseconds since the Unix epoch."""
    is_stale: bool


class LatestValues(BaseModel):
    """Response of the latest-values endpoint.

    Signals that were never observed are absent from ``messages``.
    """

    model_config = ConfigDict(extra="ignore")

    timestamp: int
    messages: dict[str, SignalPayload] = Field(default_factory=dict)

    @classmethod
    def from_snapshot(cls, snapshot: BufferSnapshot, clock: Clock) -> LatestValues:
        return cls(
            timestamp=clock.to_epoch_ms(snapshot.taken_at),
            messages={
                sid: SignalPayload(
                    value=reading.value,
                    unit=reading.unit,
                    timestamp=clock.to_epoch_ms(reading.observed_at),
                    is_stale=reading.is_stale,
                )
                for sid, reading in snapshot.readings.items()
            },
        )


class BusStatus(BaseModel):
    """Response of the bus-status endpoint."""

    model_config = ConfigDict(extra="ignore")

    connected: bool
    uptime: float = Field(ge=0)
    """Seconds since the ingest loop started."""
    message_rate: float = Field(ge=0)
    """Forwarded messages per second over the recent window."""
    error_count: int = Field(ge=0)
