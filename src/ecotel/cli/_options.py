"""Shared CLI decorator that propagates global options to leaf commands."""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Any

import click

if TYPE_CHECKING:
    from ecotel.cli.main import AppContext


def global_options(f: Any) -> Any:
    """Add global CLI options to a leaf command.

    Allows ``--format`` and ``--verbose`` to be specified **after** the
    subcommand name (e.g. ``ecotel serve --simulate --verbose``).
    Command-level values override the root-group values stored in
    :class:`AppContext`.
    """

    @click.option(
        "--verbose",
        "local_verbose",
        is_flag=True,
        default=False,
        help="Enable verbose logging",
    )
    @click.option(
        "--format",
        "local_output_format",
        type=click.Choice(["rich", "json"]),
        default=None,
        help="Output format (default: auto-detect)",
    )
    @click.pass_obj
    def wrapper(app_ctx: AppContext, /, **kwargs: Any) -> Any:
        local_output_format: str | None = kwargs.pop("local_output_format", None)
        local_verbose: bool = kwargs.pop("local_verbose", False)

        if local_output_format is not None:
            app_ctx.output_format = local_output_format
            app_ctx._formatter = None  # reset cached formatter
        if local_verbose:
            app_ctx.verbose = True

        return f(app_ctx, **kwargs)

    functools.update_wrapper(wrapper, f)
    return wrapper
