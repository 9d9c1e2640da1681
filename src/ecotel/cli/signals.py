"""``ecotel signals`` — list the signal catalog."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from ecotel.cli._options import global_options

if TYPE_CHECKING:
    from ecotel.cli.main import AppContext


@click.command("signals")
@click.option(
    "--preset",
    default="all",
    show_default=True,
    help="Preset or comma-separated signal ids to list",
)
@global_options
def signals_cmd(app_ctx: AppContext, preset: str) -> None:
    """List known bus signals with their ids, units and valid ranges."""
    from ecotel.ingest.signals import SIGNALS, resolve_signals

    selected = resolve_signals(preset)
    specs = [s for s in SIGNALS.values() if selected is None or s.signal_id in selected]

    formatter = app_ctx.formatter
    if formatter.format == "json":
        formatter.output(specs, command="signals")
    else:
        formatter.rich.signal_catalog(specs)
