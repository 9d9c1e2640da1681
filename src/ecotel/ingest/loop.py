"""Single-writer ingest loop: bus frames in, buffer updates out.

The loop is the only caller of :meth:`TelemetryBuffer.update`.  Its one
suspension point is waiting on the bus source for the next frame; buffer
and counter updates are synchronous and never span an ``await``.

A malformed or rejected frame is counted and dropped, and ingestion
carries on.  A hard bus failure stops the loop and is recorded in the
counters; reconnecting is left to whatever supervises the process.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from ecotel.clock import Clock
from ecotel.errors import BusDisconnectedError, FrameDecodeError, SignalValidationError
from ecotel.ingest.counters import IngestCounters
from ecotel.ingest.decoder import FrameDecoder

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, Collection

    from ecotel.buffer.store import TelemetryBuffer
    from ecotel.ingest.decoder import BusFrame, SignalEvent

logger = logging.getLogger(__name__)

# Minimum seconds between WARNING-level reports of dropped frames.
_DROP_REPORT_INTERVAL = 10.0


class IngestLoop:
    """Feeds decoded bus frames into a :class:`TelemetryBuffer`.

    Parameters:
        buffer: The process-wide telemetry buffer.
        source: Async iterable of :class:`BusFrame` from the bus collaborator.
        decoder: Frame decoder (defaults to the built-in signal catalog).
        clock: Monotonic time source used for receipt timestamps.
        allowed_signals: Optional allow-list; frames for other ids are rejected.
        rate_window: Width of the recent-rate window kept by the counters.
        prune_interval: Minimum time between idle-signal sweeps.
        prune_max_age: Signals not updated for this long are evicted.
    """

    def __init__(
        self,
        buffer: TelemetryBuffer,
        source: AsyncIterable[BusFrame],
        *,
        decoder: FrameDecoder | None = None,
        clock: Clock | None = None,
        allowed_signals: Collection[str] | None = None,
        rate_window: float = 5.0,
        prune_interval: float = 30.0,
        prune_max_age: float = 120.0,
    ) -> None:
        self._buffer = buffer
        self._source = source
        self._decoder = decoder or FrameDecoder()
        self._clock = clock or Clock()
        self._allowed = frozenset(allowed_signals) if allowed_signals is not None else None
        self._prune_interval = prune_interval
        self._prune_max_age = prune_max_age
        started = self._clock.now()
        self._counters = IngestCounters(started, window=rate_window)
        self._last_prune = started
        self._running = False
        self._drops_unreported = 0
        self._last_drop_report: float | None = None

    @property
    def counters(self) -> IngestCounters:
        return self._counters

    @property
    def running(self) -> bool:
        """``True`` while :meth:`run` is reading from the bus."""
        return self._running

    async def run(self) -> None:
        """Consume the bus source until it fails or ends.

        Never raises for bus-side problems: a disconnect is recorded via
        :meth:`IngestCounters.mark_bus_failed` and the method returns.
        """
        self._running = True
        logger.info("Ingest loop started")
        try:
            async for frame in self._source:
                self.ingest_one(frame, self._clock.now())
        except BusDisconnectedError as exc:
            self._bus_failed(str(exc) or "bus disconnected")
            return
        except OSError as exc:
            self._bus_failed(f"{type(exc).__name__}: {exc}")
            return
        finally:
            self._running = False
        self._bus_failed("bus closed")

    def ingest_one(self, frame: BusFrame, now: float) -> bool:
        """Decode, validate and store one frame received at *now*.

        Returns ``True`` if the frame was forwarded to the buffer.
        """
        try:
            event = self._decoder.decode(frame)
            self._validate(event)
        except (FrameDecodeError, SignalValidationError) as exc:
            self._counters.record_error()
            self._report_drop(exc, now)
            return False
        except Exception:
            self._counters.record_error()
            logger.warning("Unexpected error decoding frame, dropped", exc_info=True)
            return False

        self._buffer.update(event.signal_id, event.value, event.unit, now)
        self._counters.record_message(now)

        if now - self._last_prune >= self._prune_interval:
            self._last_prune = now
            self._buffer.prune(now, self._prune_max_age)
        return True

    def _validate(self, event: SignalEvent) -> None:
        if self._allowed is not None and event.signal_id not in self._allowed:
            raise SignalValidationError(
                f"Signal {event.signal_id!r} is not in the allow-list", signal_id=event.signal_id
            )
        if not math.isfinite(event.value):
            raise SignalValidationError(
                f"Non-finite value for {event.signal_id}: {event.value}",
                signal_id=event.signal_id,
            )
        spec = self._decoder.spec_for(event.signal_id)
        if spec is not None and not spec.in_range(event.value):
            raise SignalValidationError(
                f"{event.signal_id}={event.value:g} outside [{spec.minimum}, {spec.maximum}]",
                signal_id=event.signal_id,
            )

    def _report_drop(self, exc: Exception, now: float) -> None:
        self._drops_unreported += 1
        if (
            self._last_drop_report is not None
            and now - self._last_drop_report < _DROP_REPORT_INTERVAL
        ):
            logger.debug("Dropped frame: %s", exc)
            return
        logger.warning(
            "Dropped frame: %s (%d dropped since last report)", exc, self._drops_unreported
        )
        self._drops_unreported = 0
        self._last_drop_report = now

    def _bus_failed(self, reason: str) -> None:
        self._counters.mark_bus_failed(reason)
        logger.error("Bus unavailable, ingest stopped: %s", reason)
