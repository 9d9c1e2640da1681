"""``ecotel watch`` — poll a running server the way a dashboard does."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import click

from ecotel.cli._options import global_options

if TYPE_CHECKING:
    from ecotel.cli.main import AppContext
    from ecotel.client.poller import PollState
    from ecotel.errors import PollTransportError
    from ecotel.models.api import BusStatus, LatestValues

logger = logging.getLogger(__name__)


@click.command("watch")
@click.option(
    "--url",
    default=None,
    envvar="ECOTEL_POLL_URL",
    help="Server origin (default: http://127.0.0.1:5000)",
)
@click.option("--interval", type=float, default=None, help="Seconds between polls (default: 0.1)")
@click.option("--once", is_flag=True, default=False, help="Poll once and exit")
@click.option(
    "--max-retries",
    type=int,
    default=None,
    help="Consecutive failures before reporting a persistent error (default: 5)",
)
@global_options
def watch_cmd(
    app_ctx: AppContext,
    url: str | None,
    interval: float | None,
    once: bool,
    max_retries: int | None,
) -> None:
    """Poll latest values and bus status on a fixed interval.

    Prints a live table on a terminal, or one JSON line per response when
    piped.  Transport failures back off up to one second; after repeated
    failures a persistent error is reported while polling continues.
    """
    from ecotel.models.config import AppSettings

    settings = AppSettings()
    if app_ctx.verbose:
        from ecotel.cli.main import configure_logging

        configure_logging(verbose=True)

    asyncio.run(
        _cmd_watch(
            app_ctx,
            url or settings.poll_url,
            interval=interval or settings.poll_interval,
            timeout=settings.poll_timeout,
            backoff_max=settings.poll_backoff_max,
            max_retries=max_retries or settings.poll_max_retries,
            once=once,
        )
    )


async def _cmd_watch(
    app_ctx: AppContext,
    url: str,
    *,
    interval: float,
    timeout: float,
    backoff_max: float,
    max_retries: int,
    once: bool,
) -> None:
    from ecotel.client.poller import Poller, PollState

    formatter = app_ctx.formatter
    is_json = formatter.format == "json"
    last_values: LatestValues | None = None
    last_status: BusStatus | None = None
    live = None

    def _refresh() -> None:
        if live is None:
            return
        from rich.console import Group

        parts: list[Any] = []
        if last_values is not None:
            parts.append(formatter.rich.values_table(last_values))
        if last_status is not None:
            parts.append(formatter.rich.status_line(last_status))
        live.update(Group(*parts))

    def on_values(values: LatestValues) -> None:
        nonlocal last_values
        last_values = values
        if is_json:
            formatter.output(values, command="watch.latest", compact=True)
        else:
            _refresh()

    def on_status(status: BusStatus) -> None:
        nonlocal last_status
        last_status = status
        if is_json:
            formatter.output(status, command="watch.status", compact=True)
        else:
            _refresh()

    def on_state_change(state: PollState, error: PollTransportError | None) -> None:
        if state is PollState.FAILED and error is not None:
            if is_json:
                formatter.output_error(code="transport_error", message=str(error), command="watch")
            else:
                formatter.rich.error(f"Server unreachable: {error}")

    async with Poller(
        url,
        interval=interval,
        timeout=timeout,
        backoff_max=backoff_max,
        max_retries=max_retries,
        on_values=on_values,
        on_status=on_status,
        on_state_change=on_state_change,
    ) as poller:
        if once:
            result = await poller.poll_once()
            if not is_json:
                if result.values is not None:
                    formatter.rich.latest_values(result.values)
                if result.status is not None:
                    formatter.rich.bus_status(result.status)
            return

        if is_json:
            await poller.run()
            return

        from rich.live import Live

        with Live(console=formatter.console, refresh_per_second=10) as live_display:
            live = live_display
            await poller.run()
