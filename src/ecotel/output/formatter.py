from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Any

from rich.console import Console

from ecotel.output.json_output import format_json_error, format_json_response
from ecotel.output.rich_output import RichOutput

if TYPE_CHECKING:
    from io import TextIOBase


class OutputFormatter:
    """Unified output formatter that auto-detects JSON vs Rich output.

    Selection logic:

    * If *force_format* is provided, use it unconditionally.
    * Otherwise, if *stream* (default ``sys.stdout``) is a TTY, use ``"rich"``.
    * If the stream is **not** a TTY (piped / redirected), use ``"json"``.
    """

    def __init__(
        self,
        *,
        stream: TextIOBase | Any | None = None,
        force_format: str | None = None,
    ) -> None:
        self._stream = stream or sys.stdout
        if force_format is not None:
            self._format = force_format
        elif hasattr(self._stream, "isatty") and self._stream.isatty():
            self._format = "rich"
        else:
            self._format = "json"

        self._console = Console(file=self._stream) if stream is not None else Console()
        self._rich = RichOutput(self._console)

    @property
    def format(self) -> str:  # noqa: A003
        """Return the active output format (``"rich"`` or ``"json"``)."""
        return self._format

    @property
    def console(self) -> Console:
        return self._console

    @property
    def rich(self) -> RichOutput:
        """Return the underlying :class:`RichOutput` instance."""
        return self._rich

    def output(self, data: Any, *, command: str, compact: bool = False) -> None:
        """Emit *data* using the current format.

        * **json** — prints :func:`format_json_response` (one line when
          *compact*, so streams can be consumed as JSON lines).
        * **rich** — falls back to :meth:`RichOutput.info`; callers normally
          use :attr:`rich` directly for typed output.
        """
        if self._format == "json":
            text = format_json_response(data=data, command=command, indent=None if compact else 2)
            print(text, file=self._stream, flush=True)  # noqa: T201
        else:
            self._rich.info(str(data))

    def output_error(self, *, code: str, message: str, command: str) -> None:
        """Emit an error using the current format."""
        if self._format == "json":
            print(  # noqa: T201
                format_json_error(code=code, message=message, command=command),
                file=self._stream,
            )
        else:
            self._rich.error(message)
