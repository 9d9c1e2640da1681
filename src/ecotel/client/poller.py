"""Fixed-period poller for the snapshot server.

Runs as a cooperative asyncio task, independent of whatever renders the
data.  Every tick fetches both endpoints; each response is routed by the
:class:`~ecotel.server.app.Endpoint` that was requested and validated
against its pydantic model.

Failure handling is a small state machine::

    IDLE ──start──▶ POLLING
    POLLING ──transport failure──▶ BACKOFF   (delay doubles, capped)
    BACKOFF ──failure #max_retries──▶ FAILED (persistent error surfaced)
    BACKOFF / FAILED ──success──▶ POLLING    (failure count reset)

In ``FAILED`` the poller keeps trying at the maximum backoff so recovery
is noticed.  A transport failure means the buffer process is unreachable;
a reachable process whose bus went quiet is reported as ordinary data
(``BusStatus.connected is False``).
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from ecotel.errors import PollTransportError
from ecotel.models.api import BusStatus, LatestValues
from ecotel.server.app import Endpoint

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

_JITTER = 0.1


class PollState(StrEnum):
    IDLE = "idle"
    POLLING = "polling"
    BACKOFF = "backoff"
    FAILED = "failed"


@dataclass(slots=True)
class PollResult:
    """What one tick brought back.  ``None`` for an endpoint that failed."""

    values: LatestValues | None = None
    status: BusStatus | None = None


_MODELS: dict[Endpoint, type[LatestValues] | type[BusStatus]] = {
    Endpoint.LATEST: LatestValues,
    Endpoint.STATUS: BusStatus,
}


class Poller:
    """Polls the latest-values and bus-status endpoints on a fixed period.

    Parameters:
        base_url: Origin of the snapshot server, e.g. ``http://127.0.0.1:5000``.
        interval: Seconds between ticks while healthy.
        timeout: Per-request timeout in seconds.
        backoff_base: First retry delay after a failure (defaults to *interval*).
        backoff_max: Upper bound on the retry delay.
        max_retries: Consecutive failures before entering ``FAILED``.
        on_values: Called with each :class:`LatestValues`.
        on_status: Called with each :class:`BusStatus`.
        on_state_change: Called with ``(state, error)`` on every transition.
        client: Optional pre-built :class:`httpx.AsyncClient` (not closed by us).
    """

    def __init__(
        self,
        base_url: str,
        *,
        interval: float = 0.1,
        timeout: float = 0.5,
        backoff_base: float | None = None,
        backoff_max: float = 1.0,
        max_retries: int = 5,
        on_values: Callable[[LatestValues], None] | None = None,
        on_status: Callable[[BusStatus], None] | None = None,
        on_state_change: Callable[[PollState, PollTransportError | None], None] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self._base_url = base_url.rstrip("/")
        self._interval = interval
        self._backoff_base = backoff_base if backoff_base is not None else interval
        self._backoff_max = backoff_max
        self._max_retries = max_retries
        self._on_values = on_values
        self._on_status = on_status
        self._on_state_change = on_state_change
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._state = PollState.IDLE
        self._failures = 0
        self._last_error: PollTransportError | None = None
        self._tick_count = 0
        self._stop = asyncio.Event()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def failures(self) -> int:
        """Consecutive failed ticks."""
        return self._failures

    @property
    def last_error(self) -> PollTransportError | None:
        return self._last_error

    @property
    def tick_count(self) -> int:
        return self._tick_count

    def _set_state(self, state: PollState, error: PollTransportError | None = None) -> None:
        if state is self._state and error is None:
            return
        previous, self._state = self._state, state
        if state is not previous:
            logger.info("Poller %s -> %s%s", previous, state, f" ({error})" if error else "")
        if self._on_state_change is not None:
            try:
                self._on_state_change(state, error)
            except Exception:
                logger.warning("State-change callback failed", exc_info=True)

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def url_for(self, endpoint: Endpoint) -> str:
        return f"{self._base_url}{endpoint.value}"

    async def fetch(self, endpoint: Endpoint) -> LatestValues | BusStatus:
        """GET one endpoint and validate the body.

        Raises:
            PollTransportError: Connection failure, timeout, non-2xx status,
                or a body that is not the expected JSON shape.
        """
        url = self.url_for(endpoint)
        try:
            resp = await self._client.get(url)
        except httpx.TimeoutException as exc:
            raise PollTransportError(f"Timed out polling {url}") from exc
        except httpx.HTTPError as exc:
            raise PollTransportError(f"Failed to reach {url}: {exc}") from exc

        if not resp.is_success:
            raise PollTransportError(
                f"{url} returned HTTP {resp.status_code}", status_code=resp.status_code
            )
        try:
            body: Any = resp.json()
            return _MODELS[endpoint].model_validate(body)
        except (ValueError, ValidationError) as exc:
            raise PollTransportError(f"Invalid response from {url}: {exc}") from exc

    async def poll_once(self) -> PollResult:
        """Fetch both endpoints concurrently.

        Whatever succeeded is returned; if either failed, the first failure
        is raised after both requests have finished.
        """
        endpoints = (Endpoint.LATEST, Endpoint.STATUS)
        outcomes = await asyncio.gather(
            *(self.fetch(e) for e in endpoints), return_exceptions=True
        )
        result = PollResult()
        error: PollTransportError | None = None
        for endpoint, outcome in zip(endpoints, outcomes, strict=True):
            if isinstance(outcome, PollTransportError):
                error = error or outcome
            elif isinstance(outcome, BaseException):
                raise outcome
            elif endpoint is Endpoint.LATEST:
                assert isinstance(outcome, LatestValues)
                result.values = outcome
            else:
                assert isinstance(outcome, BusStatus)
                result.status = outcome
        self._deliver(result)
        if error is not None:
            raise error
        return result

    def _deliver(self, result: PollResult) -> None:
        if result.values is not None and self._on_values is not None:
            try:
                self._on_values(result.values)
            except Exception:
                logger.warning("Values callback failed", exc_info=True)
        if result.status is not None and self._on_status is not None:
            try:
                self._on_status(result.status)
            except Exception:
                logger.warning("Status callback failed", exc_info=True)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def backoff_delay(self) -> float:
        """Delay before the next attempt given the current failure count."""
        if self._failures == 0:
            return self._interval
        if self._state is PollState.FAILED:
            return self._backoff_max
        delay = min(self._backoff_base * 2 ** (self._failures - 1), self._backoff_max)
        return min(delay + random.uniform(0, delay * _JITTER), self._backoff_max)

    async def tick(self) -> float:
        """Run one poll, advance the state machine, return the next delay."""
        self._tick_count += 1
        if self._state is PollState.IDLE:
            self._set_state(PollState.POLLING)
        try:
            await self.poll_once()
        except PollTransportError as exc:
            self._failures += 1
            self._last_error = exc
            if self._failures >= self._max_retries:
                self._set_state(PollState.FAILED, exc)
            else:
                self._set_state(PollState.BACKOFF, exc)
            return self.backoff_delay()

        self._failures = 0
        self._last_error = None
        self._set_state(PollState.POLLING)
        return self._interval

    async def run(self, *, max_ticks: int | None = None) -> None:
        """Poll until :meth:`stop` is called (or *max_ticks* have run).

        The period is measured from the start of one tick to the start of
        the next, so a slow response shortens the following sleep.
        """
        loop = asyncio.get_running_loop()
        self._stop.clear()
        ticks = 0
        while not self._stop.is_set():
            started = loop.time()
            delay = await self.tick()
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break
            remaining = max(0.0, delay - (loop.time() - started))
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=remaining)
            except TimeoutError:
                pass

    def stop(self) -> None:
        self._stop.set()

    async def close(self) -> None:
        self.stop()
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> Poller:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
