from __future__ import annotations

from typing import TYPE_CHECKING

from rich.table import Table

if TYPE_CHECKING:
    from collections.abc import Iterable

    from rich.console import Console

    from ecotel.ingest.signals import SignalSpec
    from ecotel.models.api import BusStatus, LatestValues


class RichOutput:
    """Rich-based terminal output helpers for *ecotel*."""

    def __init__(self, console: Console) -> None:
        self._con = console

    # ------------------------------------------------------------------
    # Poll results
    # ------------------------------------------------------------------

    def values_table(self, values: LatestValues) -> Table:
        """Build a table of the latest signal values."""
        table = Table(title="Latest values")
        table.add_column("Signal", style="cyan")
        table.add_column("Value", justify="right")
        table.add_column("Unit")
        table.add_column("Age (ms)", justify="right")
        table.add_column("Fresh")

        for signal_id in sorted(values.messages):
            payload = values.messages[signal_id]
            fresh = "[yellow]stale[/yellow]" if payload.is_stale else "[green]ok[/green]"
            table.add_row(
                signal_id,
                f"{payload.value:.2f}",
                payload.unit,
                str(values.timestamp - payload.timestamp),
                fresh,
            )
        return table

    def latest_values(self, values: LatestValues) -> None:
        """Print a table of the latest signal values."""
        if not values.messages:
            self._con.print("[dim]No signals observed yet.[/dim]")
            return
        self._con.print(self.values_table(values))

    @staticmethod
    def status_line(status: BusStatus) -> str:
        """One-line bus status summary with Rich markup."""
        state = "[green]connected[/green]" if status.connected else "[red]disconnected[/red]"
        return (
            f"Bus {state}  uptime {status.uptime:.0f}s  "
            f"{status.message_rate:.1f} msg/s  errors {status.error_count}"
        )

    def bus_status(self, status: BusStatus) -> None:
        self._con.print(self.status_line(status))

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def signal_catalog(self, specs: Iterable[SignalSpec]) -> None:
        """Print the signal catalog."""
        table = Table(title="Signals")
        table.add_column("Signal", style="cyan")
        table.add_column("Bus ID", justify="right")
        table.add_column("Unit")
        table.add_column("Range", justify="right")
        table.add_column("Description")

        for spec in specs:
            table.add_row(
                spec.signal_id,
                f"0x{spec.bus_id:03X}",
                spec.unit,
                f"{spec.minimum:g} .. {spec.maximum:g}"
                if spec.minimum is not None and spec.maximum is not None
                else "",
                spec.description,
            )

        self._con.print(table)

    # ------------------------------------------------------------------
    # Generic
    # ------------------------------------------------------------------

    def error(self, message: str) -> None:
        """Print a bold red error line."""
        self._con.print(f"[bold red]Error:[/bold red] {message}")

    def info(self, message: str) -> None:
        """Print an informational message (plain)."""
        self._con.print(message)
