"""Ingest liveness counters.

Written only by the ingest loop; read by the status endpoint through
:meth:`IngestCounters.snapshot`, which copies every field under one lock
so a reader never sees ``messages_total`` from one event paired with
``last_message_at`` from another.

Forwarded messages are also tallied into fixed-width buckets covering the
last ``window`` time units, so the status endpoint can report a recent
message rate rather than a lifetime average.
"""

from __future__ import annotations

import math
import threading
from collections import deque
from dataclasses import dataclass

_BUCKETS_PER_WINDOW = 10


@dataclass(frozen=True, slots=True)
class CounterSnapshot:
    """Consistent copy of the ingest counters at one instant."""

    messages_total: int
    errors_total: int
    started_at: float
    last_message_at: float | None
    bus_failed: bool = False
    bus_error: str | None = None
    bucket_width: float = 0.5
    # (bucket index, count) pairs, oldest first
    recent: tuple[tuple[int, int], ...] = ()

    def messages_since(self, since: float) -> float:
        """Estimated forwarded messages received at or after *since*.

        Whole buckets after *since* count in full.  The bucket containing
        *since* is weighted by the share of it that lies inside the range,
        assuming its messages were spread evenly.
        """
        first = math.floor(since / self.bucket_width)
        inside = ((first + 1) * self.bucket_width - since) / self.bucket_width
        total = 0.0
        for index, count in self.recent:
            if index > first:
                total += count
            elif index == first:
                total += count * inside
        return total


class IngestCounters:
    """Message/error counters plus a bucketed window for rate estimates."""

    def __init__(self, started_at: float, *, window: float = 5.0) -> None:
        if window <= 0:
            raise ValueError("window must be positive")
        self._lock = threading.Lock()
        self._started_at = started_at
        self._window = window
        self._bucket_width = window / _BUCKETS_PER_WINDOW
        self._messages_total = 0
        self._errors_total = 0
        self._last_message_at: float | None = None
        self._bus_failed = False
        self._bus_error: str | None = None
        self._buckets: deque[list[int]] = deque()

    @property
    def window(self) -> float:
        return self._window

    def record_message(self, now: float) -> None:
        """Count one successfully forwarded event received at *now*."""
        index = math.floor(now / self._bucket_width)
        with self._lock:
            self._messages_total += 1
            self._last_message_at = now
            if self._buckets and self._buckets[-1][0] == index:
                self._buckets[-1][1] += 1
            else:
                self._buckets.append([index, 1])
            oldest = index - _BUCKETS_PER_WINDOW
            while self._buckets[0][0] < oldest:
                self._buckets.popleft()

    def record_error(self) -> None:
        """Count one dropped (malformed or rejected) event."""
        with self._lock:
            self._errors_total += 1

    def mark_bus_failed(self, reason: str) -> None:
        """Flag a hard bus failure; the loop has stopped reading."""
        with self._lock:
            self._bus_failed = True
            self._bus_error = reason

    def snapshot(self) -> CounterSnapshot:
        with self._lock:
            return CounterSnapshot(
                messages_total=self._messages_total,
                errors_total=self._errors_total,
                started_at=self._started_at,
                last_message_at=self._last_message_at,
                bus_failed=self._bus_failed,
                bus_error=self._bus_error,
                bucket_width=self._bucket_width,
                recent=tuple((index, count) for index, count in self._buckets),
            )
