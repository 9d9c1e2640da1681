"""ecotel — staleness-aware vehicle telemetry buffer and polling endpoints."""

from __future__ import annotations

__version__ = "0.3.0"
