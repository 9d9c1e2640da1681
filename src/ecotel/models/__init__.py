"""Pydantic models: wire payloads and application settings."""

from __future__ import annotations

from ecotel.models.api import BusStatus, LatestValues, SignalPayload
from ecotel.models.config import AppSettings

__all__ = [
    "AppSettings",
    "BusStatus",
    "LatestValues",
    "SignalPayload",
]
