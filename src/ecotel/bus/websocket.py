"""WebSocket client for a bus bridge.

The bridge sits next to the vehicle bus interface and pushes every frame
it sees over a WebSocket: binary messages are raw ``bus_id`` + payload
frames, text messages are JSON frames (see
:mod:`ecotel.ingest.decoder`).

This adapter does not reconnect.  A failed connect or a dropped link
raises :class:`~ecotel.errors.BusDisconnectedError` out of the iterator so
the ingest loop can record the failure and stop.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from ecotel.errors import BusDisconnectedError
from ecotel.ingest.decoder import BusFrame

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


class WebSocketBusSource:
    """Async iterable of :class:`BusFrame` read from a bus bridge WebSocket."""

    def __init__(self, url: str, *, open_timeout: float = 5.0) -> None:
        self._url = url
        self._open_timeout = open_timeout
        self._frame_count = 0

    @property
    def url(self) -> str:
        return self._url

    @property
    def frame_count(self) -> int:
        """Total messages received from the bridge."""
        return self._frame_count

    def __aiter__(self) -> AsyncIterator[BusFrame]:
        return self._frames()

    async def _frames(self) -> AsyncIterator[BusFrame]:
        import websockets.asyncio.client as ws_client
        from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

        ws: Any
        try:
            ws = await ws_client.connect(self._url, open_timeout=self._open_timeout)
        except (OSError, TimeoutError) as exc:
            raise BusDisconnectedError(
                f"Failed to connect to bus bridge at {self._url}: {exc}"
            ) from exc
        except Exception as exc:
            raise BusDisconnectedError(
                f"Bus bridge at {self._url} rejected the connection: {exc}"
            ) from exc

        logger.info("Connected to bus bridge at %s", self._url)
        try:
            while True:
                try:
                    message = await ws.recv()
                except ConnectionClosedOK:
                    logger.info("Bus bridge closed the connection")
                    return
                except ConnectionClosed as exc:
                    raise BusDisconnectedError(f"Bus bridge connection lost: {exc}") from exc
                self._frame_count += 1
                yield BusFrame(payload=message, arrival_time=time.monotonic())
        finally:
            await ws.close()
