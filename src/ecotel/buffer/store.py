"""Thread-safe store of the latest value of every bus signal.

One writer (the ingest loop) calls :meth:`TelemetryBuffer.update`; any
number of request handlers call :meth:`~TelemetryBuffer.get` and
:meth:`~TelemetryBuffer.snapshot` concurrently.  A single
:class:`threading.Lock` guards the record map and is held only for the
dictionary assignment, lookup or copy.  Staleness is computed after the
lock is released.
"""

from __future__ import annotations

import logging
import threading

from ecotel.buffer.records import BufferSnapshot, SignalReading, SignalRecord

logger = logging.getLogger(__name__)


class TelemetryBuffer:
    """Latest-value store keyed by signal id.

    The buffer does not validate values: callers reject non-finite or
    out-of-range input before calling :meth:`update`.  Time arguments are
    opaque numbers on one monotonic scale (seconds in production).
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, SignalRecord] = {}

    def update(self, signal_id: str, value: float, unit: str, now: float) -> None:
        """Record or overwrite the latest value for *signal_id*."""
        record = SignalRecord(signal_id=signal_id, value=value, unit=unit, observed_at=now)
        with self._lock:
            self._records[signal_id] = record

    def get(self, signal_id: str, now: float, stale_threshold: float) -> SignalReading | None:
        """Return the reading for *signal_id*, or ``None`` if never observed."""
        with self._lock:
            record = self._records.get(signal_id)
        if record is None:
            return None
        return SignalReading(record=record, is_stale=record.is_stale(now, stale_threshold))

    def snapshot(self, now: float, stale_threshold: float) -> BufferSnapshot:
        """Return every record with staleness evaluated against the same *now*."""
        with self._lock:
            records = list(self._records.values())
        readings = {
            r.signal_id: SignalReading(record=r, is_stale=r.is_stale(now, stale_threshold))
            for r in records
        }
        return BufferSnapshot(taken_at=now, readings=readings)

    def prune(self, now: float, max_age: float) -> int:
        """Evict records not updated for more than *max_age*.

        Bounds memory under signal churn.  Staleness never triggers removal.
        Returns the number of records removed.
        """
        with self._lock:
            expired = [
                sid for sid, r in self._records.items() if now - r.observed_at > max_age
            ]
            for sid in expired:
                del self._records[sid]
        if expired:
            logger.info("Pruned %d idle signal(s): %s", len(expired), ", ".join(sorted(expired)))
        return len(expired)

    def signal_ids(self) -> list[str]:
        """Ids of every signal currently held, sorted."""
        with self._lock:
            return sorted(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, signal_id: object) -> bool:
        with self._lock:
            return signal_id in self._records
