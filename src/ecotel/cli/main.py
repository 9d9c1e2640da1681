"""CLI entry-point: Click command group and dispatch."""

from __future__ import annotations

import dataclasses
import logging

import click

from ecotel.errors import BusDisconnectedError, ConfigError, PollTransportError
from ecotel.output.formatter import OutputFormatter

# Library loggers that are chatty at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "websockets", "uvicorn.access")

# ---------------------------------------------------------------------------
# Application context (stored in ctx.obj)
# ---------------------------------------------------------------------------


@dataclasses.dataclass
class AppContext:
    """Shared state passed to every Click command via ``@click.pass_obj``."""

    output_format: str | None
    verbose: bool
    _formatter: OutputFormatter | None = dataclasses.field(default=None, repr=False)

    @property
    def formatter(self) -> OutputFormatter:
        if self._formatter is None:
            self._formatter = OutputFormatter(force_format=self.output_format)
        return self._formatter


def configure_logging(verbose: bool) -> None:
    """Route log records through Rich on stderr.  DEBUG when *verbose*."""
    from rich.console import Console
    from rich.logging import RichHandler

    handler = RichHandler(console=Console(stderr=True), show_path=verbose, rich_tracebacks=True)
    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing, RichHandler):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Root Click group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["rich", "json"]),
    default=None,
    help="Output format (default: auto-detect)",
)
@click.option("--verbose", is_flag=True, default=False, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, output_format: str | None, verbose: bool) -> None:
    """Vehicle telemetry buffer with polling endpoints for dashboards."""
    ctx.ensure_object(dict)
    ctx.obj = AppContext(output_format=output_format, verbose=verbose)


def _register_commands() -> None:
    """Import and attach all subcommands to the root CLI."""
    from ecotel.cli.serve import serve_cmd
    from ecotel.cli.signals import signals_cmd
    from ecotel.cli.watch import watch_cmd

    cli.add_command(serve_cmd)
    cli.add_command(signals_cmd)
    cli.add_command(watch_cmd)


_register_commands()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and dispatch to the appropriate command handler."""
    try:
        cli(args=argv, standalone_mode=False)
    except click.exceptions.Exit as exc:
        raise SystemExit(exc.exit_code) from None
    except click.exceptions.Abort:
        raise SystemExit(1) from None
    except click.ClickException as exc:
        exc.show()
        raise SystemExit(exc.exit_code) from None
    except KeyboardInterrupt:
        raise SystemExit(130) from None
    except SystemExit:
        raise
    except Exception as exc:
        app_ctx = _extract_app_ctx()
        formatter = app_ctx.formatter if app_ctx else OutputFormatter()
        cmd_name = _get_command_name()

        if _handle_known_error(exc, formatter, cmd_name):
            raise SystemExit(1) from exc

        formatter.output_error(
            code=type(exc).__name__,
            message=str(exc),
            command=cmd_name,
        )
        raise SystemExit(1) from exc


# ---------------------------------------------------------------------------
# Helpers for error handling
# ---------------------------------------------------------------------------


def _extract_app_ctx() -> AppContext | None:
    """Try to extract AppContext from the current Click context."""
    ctx = click.get_current_context(silent=True)
    while ctx is not None:
        if isinstance(ctx.obj, AppContext):
            return ctx.obj
        ctx = ctx.parent
    return None


def _get_command_name() -> str:
    """Reconstruct a dotted command name from the Click context chain."""
    ctx = click.get_current_context(silent=True)
    parts: list[str] = []
    while ctx is not None:
        if ctx.info_name and ctx.info_name != "cli":
            parts.append(ctx.info_name)
        ctx = ctx.parent
    return ".".join(reversed(parts)) or "unknown"


def _handle_known_error(exc: Exception, formatter: OutputFormatter, cmd_name: str) -> bool:
    """Show well-known errors with a hint.

    Returns ``True`` if the error was handled and the caller should exit.
    """
    hints: dict[type[Exception], tuple[str, str]] = {
        ConfigError: ("config_error", "Check ECOTEL_* environment variables and options."),
        BusDisconnectedError: (
            "bus_unavailable",
            "Check that the bus bridge is running, or use --simulate.",
        ),
        PollTransportError: (
            "transport_error",
            "Is 'ecotel serve' running and reachable at --url?",
        ),
    }
    for exc_type, (code, hint) in hints.items():
        if not isinstance(exc, exc_type):
            continue
        if formatter.format == "json":
            formatter.output_error(code=code, message=f"{exc} {hint}", command=cmd_name)
        else:
            formatter.rich.error(str(exc))
            formatter.rich.info(f"[dim]{hint}[/dim]")
        return True
    return False
