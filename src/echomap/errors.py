"""Exception hierarchy shared across the relay, viewer, and scan store."""

from __future__ import annotations


class EchoMapError(Exception):
    """Base class for all EchoMap errors."""


class ConfigError(EchoMapError):
    """Invalid or missing configuration."""


class TransportError(EchoMapError):
    """Failed to connect to the relay, or the connection dropped."""


class DecodeError(EchoMapError):
    """A single wire payload could not be turned into a sample.

    Recoverable: the caller discards the message and keeps reading.
    """

    def __init__(self, message: str, payload: str | bytes | None = None) -> None:
        super().__init__(message)
        self.payload = payload


class PersistenceError(EchoMapError):
    """Saving, loading, or listing scans failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ScanNotFoundError(PersistenceError):
    """The requested scan does not exist in the store."""


class PlyFormatError(EchoMapError, ValueError):
    """A point-cloud file is not the ASCII PLY layout we read."""
