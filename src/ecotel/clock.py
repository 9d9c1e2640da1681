"""Monotonic time source with an epoch anchor for wire timestamps.

Staleness and connection checks use :func:`time.monotonic` so wall-clock
adjustments never flip a signal to stale.  The JSON endpoints report
milliseconds since the Unix epoch; :meth:`Clock.to_epoch_ms` projects a
monotonic reading onto the wall clock captured when the clock was built.
"""

from __future__ import annotations

import time
from collections.abc import Callable


class Clock:
    """Monotonic clock that can express its readings as epoch milliseconds."""

    def __init__(
        self,
        monotonic: Callable[[], float] = time.monotonic,
        wall: Callable[[], float] = time.time,
    ) -> None:
        self._monotonic = monotonic
        self._mono_anchor = monotonic()
        self._wall_anchor = wall()

    def now(self) -> float:
        """Current monotonic reading in seconds."""
        return self._monotonic()

    def to_epoch_ms(self, mono: float) -> int:
        """Convert a monotonic reading from this clock to epoch milliseconds."""
        return round((self._wall_anchor + (mono - self._mono_anchor)) * 1000)


class ManualClock(Clock):
    """Clock whose time only moves when told to.  Used by tests and replays."""

    def __init__(self, start: float = 0.0, *, epoch: float = 0.0) -> None:
        self._t = start
        super().__init__(monotonic=lambda: self._t, wall=lambda: epoch)

    def set(self, t: float) -> None:
        self._t = t

    def advance(self, dt: float) -> None:
        self._t += dt
