"""Exception hierarchy for ecotel."""

from __future__ import annotations


class EcotelError(Exception):
    """Base class for all ecotel errors."""


class ConfigError(EcotelError):
    """Invalid configuration or command-line input."""


class FrameDecodeError(EcotelError):
    """A bus frame could not be decoded into a signal event."""

    def __init__(self, message: str, *, raw: bytes | str | None = None) -> None:
        super().__init__(message)
        self.raw = raw


class SignalValidationError(EcotelError):
    """A decoded signal value was rejected (non-finite, out of range, unknown)."""

    def __init__(self, message: str, *, signal_id: str) -> None:
        super().__init__(message)
        self.signal_id = signal_id


class BusDisconnectedError(EcotelError):
    """The bus collaborator failed hard: device unavailable or link dropped."""


class PollTransportError(EcotelError):
    """The polling link to the buffer process failed.

    Raised for connection errors, timeouts, non-2xx responses and bodies
    that are not valid JSON.  Distinct from an application-level
    ``connected: false`` status, which is delivered as ordinary data.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
