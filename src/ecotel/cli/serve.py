"""``ecotel serve`` — ingest loop plus the HTTP snapshot server."""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
import signal
from typing import TYPE_CHECKING, Any

import click

from ecotel.cli._options import global_options

if TYPE_CHECKING:
    from collections.abc import AsyncIterable

    from ecotel.cli.main import AppContext
    from ecotel.ingest.decoder import BusFrame
    from ecotel.ingest.loop import IngestLoop
    from ecotel.models.config import AppSettings

logger = logging.getLogger(__name__)

# Exit status when --exit-on-bus-failure fires.
EXIT_BUS_FAILURE = 3


def _check_port(host: str, port: int) -> None:
    """Fail early with an actionable message if *port* is taken."""
    import socket

    if port == 0:
        return
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            s.bind((host, port))
        except OSError:
            raise click.UsageError(
                f"Port {port} is already in use.\n"
                f"Use --port to specify a different port, e.g.:\n"
                f"  ecotel serve --port {port + 1}"
            ) from None


async def _safe_uvicorn_serve(server: Any, port: int) -> None:
    """Run uvicorn.Server.serve() with SystemExit protection.

    Uvicorn calls ``sys.exit(1)`` when it cannot bind the port.
    ``SystemExit`` is a ``BaseException`` that kills the asyncio event
    loop before the owning task can retrieve the exception.  This
    wrapper converts it to a regular ``OSError``.
    """
    try:
        await server.serve()
    except SystemExit as exc:
        if exc.code == 0:
            logger.debug("Uvicorn exited cleanly (code 0) on port %d", port)
            return
        raise OSError(f"Snapshot server failed to start on port {port}") from exc


def _on_ingest_done(ingest: IngestLoop, task: asyncio.Task[None]) -> None:
    """Record an ingest crash so status stops reporting a live bus."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is None:
        return
    logger.error("Ingest loop crashed", exc_info=exc)
    ingest.counters.mark_bus_failed(f"ingest crashed: {type(exc).__name__}: {exc}")


@click.command("serve")
@click.option(
    "--host",
    default=None,
    envvar="ECOTEL_HOST",
    help="Bind address (default: 127.0.0.1)",
)
@click.option(
    "--port",
    type=int,
    default=None,
    envvar="ECOTEL_PORT",
    help="HTTP port (default: 5000)",
)
@click.option(
    "--bus-url",
    default=None,
    envvar="ECOTEL_BUS_URL",
    help="WebSocket URL of the bus bridge (ws://...)",
)
@click.option("--simulate", is_flag=True, default=False, help="Use the built-in simulated bus")
@click.option(
    "--sim-rate",
    type=float,
    default=10.0,
    show_default=True,
    help="Simulated bus ticks per second",
)
@click.option(
    "--signals",
    default=None,
    help="Allow-list: 'any', a preset (default, powertrain, battery, all) or comma-separated ids",
)
@click.option(
    "--stale-threshold",
    type=float,
    default=None,
    help="Seconds before a value is stale",
)
@click.option(
    "--disconnect-threshold",
    type=float,
    default=None,
    help="Seconds of bus silence before status reports disconnected",
)
@click.option("--rate-window", type=float, default=None, help="Message-rate window in seconds")
@click.option(
    "--exit-on-bus-failure",
    is_flag=True,
    default=False,
    help=f"Exit with status {EXIT_BUS_FAILURE} when the bus fails, for supervised restarts",
)
@global_options
def serve_cmd(
    app_ctx: AppContext,
    host: str | None,
    port: int | None,
    bus_url: str | None,
    simulate: bool,
    sim_rate: float,
    signals: str | None,
    stale_threshold: float | None,
    disconnect_threshold: float | None,
    rate_window: float | None,
    exit_on_bus_failure: bool,
) -> None:
    """Ingest bus frames and serve the latest values over HTTP.

    \b
    Endpoints:
      GET /api/v1/can/latest   latest value of every observed signal
      GET /api/v1/can/status   bus connection status and counters
      GET /healthz             process liveness

    \b
    Examples:
      ecotel serve --simulate                        # demo with a fake bus
      ecotel serve --bus-url ws://127.0.0.1:8765     # read from a bus bridge
      ecotel serve --simulate --signals default --stale-threshold 0.5
    """
    from pydantic import ValidationError

    from ecotel.cli.main import configure_logging
    from ecotel.errors import ConfigError
    from ecotel.ingest.signals import resolve_signals
    from ecotel.models.config import AppSettings

    if bus_url and simulate:
        raise click.UsageError("--bus-url and --simulate cannot both be set.")

    overrides: dict[str, Any] = {
        "host": host,
        "port": port,
        "bus_url": bus_url,
        "signals": signals,
        "stale_threshold": stale_threshold,
        "disconnect_threshold": disconnect_threshold,
        "rate_window": rate_window,
    }
    try:
        settings = AppSettings(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings: {exc}") from exc

    if not simulate and not settings.bus_url:
        raise click.UsageError(
            "No bus source.\n"
            "Pass --bus-url ws://... (or set ECOTEL_BUS_URL), or use --simulate."
        )

    allowed = resolve_signals(settings.signals)
    _check_port(settings.host, settings.port)
    configure_logging(app_ctx.verbose)

    code = asyncio.run(
        _cmd_serve(
            app_ctx,
            settings,
            allowed,
            simulate=simulate,
            sim_rate=sim_rate,
            exit_on_bus_failure=exit_on_bus_failure,
        )
    )
    if code:
        raise SystemExit(code)


def _build_source(
    settings: AppSettings, *, simulate: bool, sim_rate: float
) -> AsyncIterable[BusFrame]:
    if simulate:
        from ecotel.bus.simulator import SimulatedBusSource

        return SimulatedBusSource(rate_hz=sim_rate)

    from ecotel.bus.websocket import WebSocketBusSource

    assert settings.bus_url is not None
    return WebSocketBusSource(settings.bus_url)


async def _cmd_serve(
    app_ctx: AppContext,
    settings: AppSettings,
    allowed: frozenset[str] | None,
    *,
    simulate: bool,
    sim_rate: float,
    exit_on_bus_failure: bool,
) -> int:
    import uvicorn

    from ecotel.buffer.store import TelemetryBuffer
    from ecotel.clock import Clock
    from ecotel.ingest.loop import IngestLoop
    from ecotel.server.app import API_PREFIX, create_app

    formatter = app_ctx.formatter
    is_rich = formatter.format != "json"

    clock = Clock()
    buffer = TelemetryBuffer()
    ingest = IngestLoop(
        buffer,
        _build_source(settings, simulate=simulate, sim_rate=sim_rate),
        clock=clock,
        allowed_signals=allowed,
        rate_window=settings.rate_window,
        prune_interval=settings.prune_interval,
        prune_max_age=settings.prune_max_age,
    )
    app = create_app(buffer, ingest.counters, settings, clock)

    uvi_server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=settings.host,
            port=settings.port,
            log_level="debug" if app_ctx.verbose else "warning",
            log_config=None,
        )
    )

    # -- SIGTERM handler for graceful container/systemd shutdown --
    shutdown_event = asyncio.Event()

    def _handle_sigterm() -> None:
        logger.info("SIGTERM received — shutting down gracefully")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    if hasattr(signal, "SIGTERM"):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signal.SIGTERM, _handle_sigterm)

    base_url = f"http://{settings.host}:{settings.port}{API_PREFIX}"
    if is_rich:
        source_desc = "simulated bus" if simulate else settings.bus_url
        formatter.rich.info(f"Serving {base_url}/can/latest and /can/status ({source_desc})")
        formatter.rich.info("Press Ctrl+C to stop.")
    else:
        formatter.output({"url": base_url, "simulate": simulate}, command="serve", compact=True)

    server_task = asyncio.create_task(_safe_uvicorn_serve(uvi_server, settings.port))
    ingest_task = asyncio.create_task(ingest.run())
    ingest_task.add_done_callback(functools.partial(_on_ingest_done, ingest))
    shutdown_waiter = asyncio.create_task(shutdown_event.wait())

    waiting: set[asyncio.Task[Any]] = {server_task, shutdown_waiter}
    if exit_on_bus_failure:
        waiting.add(ingest_task)

    code = 0
    try:
        done, _ = await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)
        if ingest_task in done:
            reason = ingest.counters.snapshot().bus_error
            logger.error("Exiting after bus failure: %s", reason)
            code = EXIT_BUS_FAILURE
        if server_task in done:
            # Surfaces bind failures raised by _safe_uvicorn_serve.
            server_task.result()
    finally:
        # Signal uvicorn to shut down gracefully rather than cancelling.
        uvi_server.should_exit = True
        if not server_task.done():
            with contextlib.suppress(asyncio.CancelledError):
                await server_task
        for task in (ingest_task, shutdown_waiter):
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

        counters = ingest.counters.snapshot()
        if is_rich:
            formatter.rich.info(
                f"[dim]Ingested {counters.messages_total} message(s), "
                f"{counters.errors_total} error(s), {len(buffer)} signal(s) held[/dim]"
            )
        else:
            formatter.output(counters, command="serve.summary", compact=True)
    return code
