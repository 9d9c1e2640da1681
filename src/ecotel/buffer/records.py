"""Immutable value types held and returned by :class:`TelemetryBuffer`."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping


@dataclass(frozen=True, slots=True)
class SignalRecord:
    """A single signal's most recent value.

    ``observed_at`` is a monotonic reading, never wall-clock time.  Records
    are replaced wholesale on update, so a value is never paired with
    another update's timestamp.
    """

    signal_id: str
    value: float
    unit: str
    observed_at: float

    def is_stale(self, now: float, stale_threshold: float) -> bool:
        return now - self.observed_at > stale_threshold


@dataclass(frozen=True, slots=True)
class SignalReading:
    """A record paired with its staleness as seen at one point in time."""

    record: SignalRecord
    is_stale: bool

    @property
    def signal_id(self) -> str:
        return self.record.signal_id

    @property
    def value(self) -> float:
        return self.record.value

    @property
    def unit(self) -> str:
        return self.record.unit

    @property
    def observed_at(self) -> float:
        return self.record.observed_at


class BufferSnapshot:
    """Point-in-time view of every signal, all judged against ``taken_at``.

    Behaves as a read-only mapping of signal id to :class:`SignalReading`.
    """

    __slots__ = ("_readings", "_taken_at")

    def __init__(self, taken_at: float, readings: dict[str, SignalReading]) -> None:
        self._taken_at = taken_at
        self._readings: Mapping[str, SignalReading] = MappingProxyType(readings)

    @property
    def taken_at(self) -> float:
        """The single ``now`` every reading in this snapshot was evaluated at."""
        return self._taken_at

    @property
    def readings(self) -> Mapping[str, SignalReading]:
        return self._readings

    def __getitem__(self, signal_id: str) -> SignalReading:
        return self._readings[signal_id]

    def __contains__(self, signal_id: object) -> bool:
        return signal_id in self._readings

    def __iter__(self) -> Iterator[str]:
        return iter(self._readings)

    def __len__(self) -> int:
        return len(self._readings)

    def get(self, signal_id: str) -> SignalReading | None:
        return self._readings.get(signal_id)

    def stale_ids(self) -> list[str]:
        """Signal ids flagged stale in this snapshot, sorted."""
        return sorted(sid for sid, r in self._readings.items() if r.is_stale)

    def __repr__(self) -> str:
        return f"BufferSnapshot(taken_at={self._taken_at!r}, signals={len(self._readings)})"
