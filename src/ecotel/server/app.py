"""Starlette app serving the latest-values and bus-status endpoints.

Each operation is a member of :class:`Endpoint` bound to its own route;
responses are never chosen by inspecting the request path.

Both endpoints are side-effect-free reads.  A latest-values request takes
exactly one :meth:`TelemetryBuffer.snapshot`, so every signal in the
response is judged stale or fresh against the same instant.  Neither
handler awaits anything while a buffer or counter lock is held, and
neither waits on the ingest loop.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.routing import Route

from ecotel.models.api import LatestValues
from ecotel.status import compute_status

if TYPE_CHECKING:
    from starlette.requests import Request

    from ecotel.buffer.store import TelemetryBuffer
    from ecotel.clock import Clock
    from ecotel.ingest.counters import IngestCounters
    from ecotel.models.config import AppSettings

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

_NO_STORE = {"Cache-Control": "no-store"}


class Endpoint(StrEnum):
    """Read operations exposed to polling clients, valued by their path."""

    LATEST = f"{API_PREFIX}/can/latest"
    STATUS = f"{API_PREFIX}/can/status"
    HEALTH = "/healthz"


class SnapshotHandlers:
    """Request handlers bound to one buffer, one set of counters and one clock."""

    def __init__(
        self,
        buffer: TelemetryBuffer,
        counters: IngestCounters,
        settings: AppSettings,
        clock: Clock,
    ) -> None:
        self._buffer = buffer
        self._counters = counters
        self._settings = settings
        self._clock = clock

    def latest_values(self) -> dict[str, Any]:
        now = self._clock.now()
        snapshot = self._buffer.snapshot(now, self._settings.stale_threshold)
        return LatestValues.from_snapshot(snapshot, self._clock).model_dump()

    def bus_status(self) -> dict[str, Any]:
        now = self._clock.now()
        status = compute_status(
            self._counters.snapshot(),
            now,
            disconnect_threshold=self._settings.disconnect_threshold,
            rate_window=self._settings.rate_window,
        )
        return status.model_dump()

    async def handle_latest(self, request: Request) -> JSONResponse:
        return JSONResponse(self.latest_values(), headers=_NO_STORE)

    async def handle_status(self, request: Request) -> JSONResponse:
        return JSONResponse(self.bus_status(), headers=_NO_STORE)

    async def handle_health(self, request: Request) -> JSONResponse:
        return JSONResponse({"ok": True}, headers=_NO_STORE)


def create_app(
    buffer: TelemetryBuffer,
    counters: IngestCounters,
    settings: AppSettings,
    clock: Clock,
) -> Starlette:
    """Build the ASGI app.  The buffer and counters are shared, not copied."""
    handlers = SnapshotHandlers(buffer, counters, settings, clock)
    dispatch = {
        Endpoint.LATEST: handlers.handle_latest,
        Endpoint.STATUS: handlers.handle_status,
        Endpoint.HEALTH: handlers.handle_health,
    }
    routes = [
        Route(endpoint.value, handler, methods=["GET"], name=endpoint.name.lower())
        for endpoint, handler in dispatch.items()
    ]
    app = Starlette(routes=routes)
    app.state.handlers = handlers
    logger.debug("Snapshot server routes: %s", ", ".join(e.value for e in dispatch))
    return app
