"""HTTP snapshot server for polling displays."""

from __future__ import annotations

from ecotel.server.app import API_PREFIX, Endpoint, create_app

__all__ = [
    "API_PREFIX",
    "Endpoint",
    "create_app",
]
