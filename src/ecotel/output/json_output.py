"""JSON envelopes for machine-readable CLI output.

Every line ``ecotel`` prints in JSON mode is one envelope::

    {"ok": true, "command": "watch.latest", "data": {...}, "timestamp": "..."}
    {"ok": false, "command": "serve", "error": {"code": "...", ...}, "timestamp": "..."}

``watch`` streams compact (single-line) envelopes so the output can be
consumed as JSON lines.
"""

from __future__ import annotations

import dataclasses
import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel


def _serialize(obj: Any) -> Any:
    """Convert *obj* to a JSON-friendly structure.

    Pydantic models go through ``model_dump(mode="json")``; dataclass
    instances (signal specs, counter snapshots) are expanded field by
    field.  Tuples become lists and enums their values.
    """
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: _serialize(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [_serialize(item) for item in obj]
    if isinstance(obj, dict):
        return {str(key): _serialize(value) for key, value in obj.items()}
    return obj


def _envelope(ok: bool, command: str, body: dict[str, Any]) -> dict[str, Any]:
    return {
        "ok": ok,
        "command": command,
        **body,
        "timestamp": datetime.now(UTC).isoformat(),
    }


def format_json_response(*, data: Any, command: str, indent: int | None = 2) -> str:
    """Return a success envelope; one line when *indent* is ``None``."""
    envelope = _envelope(True, command, {"data": _serialize(data)})
    return json.dumps(envelope, indent=indent, default=str)


def format_json_error(*, code: str, message: str, command: str, **extra: Any) -> str:
    """Return an error envelope.  *extra* is merged into the ``error`` object."""
    error = {"code": code, "message": message, **_serialize(extra)}
    return json.dumps(_envelope(False, command, {"error": error}), indent=2, default=str)
