"""Decode bus frames into ``(signal_id, value, unit)`` events.

The bus collaborator hands over frames in one of three shapes:

* **binary** — ``bus_id`` (uint16, big-endian) followed by the signal's
  raw payload, decoded with the catalog ``struct`` format and converted
  to the display unit::

      +---------+----------------------+
      | bus_id  | payload (fmt-sized)  |
      | 2 bytes | 1..8 bytes           |
      +---------+----------------------+

* **JSON text** — ``{"signal_id": "speed", "value": 42.0, "unit": "km/h"}``
  (``unit`` optional, taken from the catalog) or
  ``{"bus_id": 160, "data": "1068"}`` carrying a hex payload.

* **pre-decoded** — a :class:`BusFrame` with ``signal_id`` and ``value``
  already set by the collaborator.

Anything that cannot be turned into a signal event raises
:class:`~ecotel.errors.FrameDecodeError`.  Range and finiteness checks are
not done here; see :class:`~ecotel.ingest.loop.IngestLoop`.
"""

from __future__ import annotations

import json
import logging
import struct
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ecotel.errors import FrameDecodeError
from ecotel.ingest.signals import SIGNALS

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ecotel.ingest.signals import SignalSpec

logger = logging.getLogger(__name__)

_BUS_ID = struct.Struct(">H")


@dataclass(slots=True)
class BusFrame:
    """One unit of data delivered by the bus collaborator."""

    payload: bytes | str | None = None
    signal_id: str | None = None
    value: Any = None
    unit: str | None = None
    arrival_time: float | None = None


@dataclass(frozen=True, slots=True)
class SignalEvent:
    """A decoded, unit-converted signal value ready for validation."""

    signal_id: str
    value: float
    unit: str


class FrameDecoder:
    """Decodes :class:`BusFrame` instances using a signal catalog."""

    def __init__(self, catalog: Mapping[str, SignalSpec] | None = None) -> None:
        self._catalog: Mapping[str, SignalSpec] = catalog if catalog is not None else SIGNALS
        self._by_bus_id: dict[int, SignalSpec] = {s.bus_id: s for s in self._catalog.values()}

    @property
    def catalog(self) -> Mapping[str, SignalSpec]:
        return self._catalog

    def spec_for(self, signal_id: str) -> SignalSpec | None:
        return self._catalog.get(signal_id)

    def decode(self, frame: BusFrame) -> SignalEvent:
        """Decode *frame* into a :class:`SignalEvent`.

        Raises:
            FrameDecodeError: If the frame is malformed or references an
                unknown bus id.
        """
        if isinstance(frame.payload, (bytes, bytearray, memoryview)):
            return self.decode_binary(bytes(frame.payload))
        if isinstance(frame.payload, str):
            return self.decode_text(frame.payload)
        if frame.signal_id is not None:
            return self._decoded_value(frame.signal_id, frame.value, frame.unit)
        raise FrameDecodeError("Frame carries neither a payload nor a signal id")

    def decode_binary(self, raw: bytes) -> SignalEvent:
        """Decode a ``bus_id`` + payload binary frame."""
        if len(raw) < _BUS_ID.size:
            raise FrameDecodeError(f"Frame too short ({len(raw)} bytes)", raw=raw)

        (bus_id,) = _BUS_ID.unpack_from(raw, 0)
        spec = self._by_bus_id.get(bus_id)
        if spec is None:
            raise FrameDecodeError(f"Unknown bus id 0x{bus_id:03X}", raw=raw)

        payload = raw[_BUS_ID.size :]
        if len(payload) != spec.payload_size:
            raise FrameDecodeError(
                f"Bad payload length for {spec.signal_id}: "
                f"expected {spec.payload_size}, got {len(payload)}",
                raw=raw,
            )
        (raw_value,) = struct.unpack(spec.fmt, payload)
        return SignalEvent(signal_id=spec.signal_id, value=spec.convert(raw_value), unit=spec.unit)

    def decode_text(self, text: str) -> SignalEvent:
        """Decode a JSON text frame."""
        try:
            msg = json.loads(text)
        except ValueError as exc:
            # also covers integers past the int-to-str digit limit
            raise FrameDecodeError(f"Invalid JSON frame: {exc}", raw=text) from exc
        if not isinstance(msg, dict):
            raise FrameDecodeError("JSON frame is not an object", raw=text)

        if "bus_id" in msg:
            try:
                raw = _BUS_ID.pack(int(msg["bus_id"])) + bytes.fromhex(str(msg.get("data", "")))
            except (TypeError, ValueError, struct.error) as exc:
                raise FrameDecodeError(
                    f"Invalid bus_id/data in JSON frame: {exc}", raw=text
                ) from exc
            return self.decode_binary(raw)

        signal_id = msg.get("signal_id")
        if not isinstance(signal_id, str) or not signal_id:
            raise FrameDecodeError("JSON frame missing 'signal_id'", raw=text)
        unit = msg.get("unit")
        if unit is not None and not isinstance(unit, str):
            raise FrameDecodeError(f"'unit' for {signal_id} is not a string", raw=text)
        return self._decoded_value(signal_id, msg.get("value"), unit)

    def _decoded_value(self, signal_id: str, value: Any, unit: str | None) -> SignalEvent:
        if isinstance(value, bool) or value is None:
            raise FrameDecodeError(f"Missing or non-numeric value for {signal_id}")
        try:
            number = float(value)
        except (TypeError, ValueError, OverflowError) as exc:
            raise FrameDecodeError(f"Non-numeric value for {signal_id}: {exc}") from exc

        if unit is None:
            spec = self._catalog.get(signal_id)
            unit = spec.unit if spec is not None else ""
        return SignalEvent(signal_id=signal_id, value=number, unit=unit)
