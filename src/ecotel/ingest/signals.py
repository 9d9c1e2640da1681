"""Signal catalog: bus ids, raw encodings, display units and valid ranges.

Each bus frame carries a 16-bit bus id followed by a fixed-size big-endian
payload.  The catalog maps bus ids to signal ids and holds the
``struct`` format, scale and offset that turn the raw payload into an
engineering value in the display unit, plus the range outside of which a
decoded value is rejected as a validation error.

Presets group signals the same way the display does.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from ecotel.errors import ConfigError


@dataclass(frozen=True, slots=True)
class SignalSpec:
    """Decoding and validation rules for one bus signal."""

    signal_id: str
    bus_id: int
    unit: str
    fmt: str
    scale: float = 1.0
    offset: float = 0.0
    minimum: float | None = None
    maximum: float | None = None
    description: str = ""

    @property
    def payload_size(self) -> int:
        return struct.calcsize(self.fmt)

    def convert(self, raw: int | float) -> float:
        """Apply scale and offset to a raw integer reading."""
        return raw * self.scale + self.offset

    def in_range(self, value: float) -> bool:
        if self.minimum is not None and value < self.minimum:
            return False
        return not (self.maximum is not None and value > self.maximum)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

SIGNALS: dict[str, SignalSpec] = {
    spec.signal_id: spec
    for spec in (
        # --- Drive ---
        SignalSpec(
            "speed", 0x0A0, "km/h", ">H", scale=0.01, minimum=0.0, maximum=250.0,
            description="Vehicle speed",
        ),
        SignalSpec(
            "motor_rpm", 0x0C1, "rpm", ">H", minimum=0.0, maximum=12000.0,
            description="Traction motor speed",
        ),
        SignalSpec(
            "motor_temp", 0x0C0, "°C", ">h", scale=0.1, minimum=-40.0, maximum=200.0,
            description="Traction motor winding temperature",
        ),
        # --- Battery ---
        SignalSpec(
            "battery_voltage", 0x0B0, "V", ">H", scale=0.01, minimum=0.0, maximum=100.0,
            description="Low-voltage pack terminal voltage",
        ),
        SignalSpec(
            "battery_current", 0x0B1, "A", ">h", scale=0.1, minimum=-500.0, maximum=500.0,
            description="Pack current, positive when discharging",
        ),
        SignalSpec(
            "state_of_charge", 0x0B2, "%", ">B", scale=0.5, minimum=0.0, maximum=100.0,
            description="Pack state of charge",
        ),
    )
}

BUS_IDS: dict[int, SignalSpec] = {spec.bus_id: spec for spec in SIGNALS.values()}

PRESETS: dict[str, tuple[str, ...]] = {
    "default": ("speed", "battery_voltage", "motor_temp"),
    "powertrain": ("speed", "motor_rpm", "motor_temp"),
    "battery": ("battery_voltage", "battery_current", "state_of_charge"),
    "all": tuple(SIGNALS),
}

# Accept any signal id, catalogued or not.
ANY = "any"


def resolve_signals(spec: str) -> frozenset[str] | None:
    """Resolve a ``--signals`` argument to an allow-list.

    Args:
        spec: ``"any"`` (no allow-list), a preset name (e.g. ``"default"``,
            ``"battery"``) or a comma-separated list of signal ids.

    Returns:
        The set of allowed signal ids, or ``None`` when every id is accepted.

    Raises:
        ConfigError: If a signal id or preset is unrecognized.
    """
    spec = spec.strip()
    if spec == ANY:
        return None
    if spec in PRESETS:
        return frozenset(PRESETS[spec])

    allowed: set[str] = set()
    for name in spec.split(","):
        name = name.strip()
        if not name:
            continue
        if name not in SIGNALS:
            raise ConfigError(
                f"Unknown signal: '{name}'. "
                f"Available presets: {', '.join(sorted([*PRESETS, ANY]))}"
            )
        allowed.add(name)
    if not allowed:
        raise ConfigError("No signals selected.")
    return frozenset(allowed)


def encode_frame(spec: SignalSpec, value: float) -> bytes:
    """Encode *value* as a binary bus frame for *spec* (inverse of decoding).

    Raises:
        struct.error: If the value does not fit the signal's raw encoding.
    """
    raw = round((value - spec.offset) / spec.scale)
    return struct.pack(">H", spec.bus_id) + struct.pack(spec.fmt, raw)
