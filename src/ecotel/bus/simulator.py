"""Simulated vehicle bus for demos and tests.

Emits binary frames for every catalog signal on a fixed tick, following a
simple repeating drive cycle: accelerate, cruise, brake, stand still.
Optionally injects malformed frames, and can stop after a number of
frames or raise a disconnect to exercise the ingest loop's failure path.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
import time
from typing import TYPE_CHECKING

from ecotel.errors import BusDisconnectedError
from ecotel.ingest.decoder import BusFrame
from ecotel.ingest.signals import SIGNALS, encode_frame

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping

    from ecotel.ingest.signals import SignalSpec

logger = logging.getLogger(__name__)

# Drive cycle length in seconds.
_CYCLE = 60.0


def drive_cycle(t: float, *, soc_start: float = 95.0) -> dict[str, float]:
    """Plausible signal values *t* seconds into the simulated drive."""
    phase = (t % _CYCLE) / _CYCLE
    if phase < 0.25:
        speed = 80.0 * (phase / 0.25)
        accel = 1.0
    elif phase < 0.6:
        speed = 80.0
        accel = 0.1
    elif phase < 0.8:
        speed = 80.0 * (1 - (phase - 0.6) / 0.2)
        accel = -0.6
    else:
        speed = 0.0
        accel = 0.0
    current = 120.0 * accel + 0.4 * speed
    return {
        "speed": speed,
        "motor_rpm": speed * 95.0,
        "motor_temp": 35.0 + 30.0 * (1 - math.exp(-t / 600.0)),
        "battery_voltage": 12.6 - 0.004 * current,
        "battery_current": current,
        "state_of_charge": max(0.0, soc_start - t / 120.0),
    }


class SimulatedBusSource:
    """Async iterable of simulated :class:`BusFrame` objects.

    Parameters:
        rate_hz: Ticks per second; each tick emits one frame per signal.
        catalog: Signals to simulate (defaults to the full catalog).
        error_rate: Probability that a frame is replaced by garbage.
        max_frames: Stop (cleanly) after this many frames.
        fail_after: Raise :class:`BusDisconnectedError` after this many frames.
        seed: Seed for noise and error injection.
    """

    def __init__(
        self,
        *,
        rate_hz: float = 10.0,
        catalog: Mapping[str, SignalSpec] | None = None,
        error_rate: float = 0.0,
        max_frames: int | None = None,
        fail_after: int | None = None,
        seed: int | None = None,
    ) -> None:
        if rate_hz <= 0:
            raise ValueError("rate_hz must be positive")
        self._period = 1.0 / rate_hz
        self._catalog = catalog if catalog is not None else SIGNALS
        self._error_rate = error_rate
        self._max_frames = max_frames
        self._fail_after = fail_after
        self._rng = random.Random(seed)
        self._frame_count = 0

    @property
    def frame_count(self) -> int:
        return self._frame_count

    def __aiter__(self) -> AsyncIterator[BusFrame]:
        return self._frames()

    def _payload(self, spec: SignalSpec, value: float) -> bytes:
        if self._error_rate and self._rng.random() < self._error_rate:
            return bytes(self._rng.randrange(256) for _ in range(self._rng.randint(0, 2)))
        noisy = value + self._rng.gauss(0.0, abs(value) * 0.005 + spec.scale)
        if spec.minimum is not None:
            noisy = max(spec.minimum, noisy)
        if spec.maximum is not None:
            noisy = min(spec.maximum, noisy)
        return encode_frame(spec, noisy)

    async def _frames(self) -> AsyncIterator[BusFrame]:
        start = time.monotonic()
        logger.info(
            "Simulated bus running at %.1f Hz (%d signals)", 1 / self._period, len(self._catalog)
        )
        while True:
            values = drive_cycle(time.monotonic() - start)
            for signal_id, spec in self._catalog.items():
                if self._max_frames is not None and self._frame_count >= self._max_frames:
                    return
                if self._fail_after is not None and self._frame_count >= self._fail_after:
                    raise BusDisconnectedError("simulated bus disconnect")
                self._frame_count += 1
                yield BusFrame(
                    payload=self._payload(spec, values.get(signal_id, 0.0)),
                    arrival_time=time.monotonic(),
                )
            await asyncio.sleep(self._period)
