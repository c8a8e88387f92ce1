"""
Exception taxonomy for the sync engine.

Only ConfigError and UpstreamQueryError are allowed to end a run. Every
DestinationError is caught at the per-record boundary by the runner,
counted and logged, and the run moves on to the next record.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all sync failures."""


class ConfigError(SyncError):
    """Required configuration is missing or invalid; the run never starts."""


class UpstreamQueryError(SyncError):
    """A change-feed page request failed.

    Attributes:
        status_code: HTTP status of the failed page, or None for transport errors
        body: Response body (or transport error text)
    """

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class DestinationError(SyncError):
    """A destination API call returned a non-success response."""

    def __init__(
        self,
        message: str,
        *,
        method: str,
        endpoint: str,
        status_code: int | None = None,
        body: str = "",
    ):
        super().__init__(message)
        self.method = method
        self.endpoint = endpoint
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base} ({self.method} {self.endpoint} -> {self.status_code}): {self.body}"


class SchemaFetchError(DestinationError):
    """Fetching the destination database schema failed."""


class SchemaMutationError(DestinationError):
    """Appending an option to a categorical property failed."""

    def __init__(self, message: str, *, property_name: str, option_name: str, **kwargs):
        super().__init__(message, **kwargs)
        self.property_name = property_name
        self.option_name = option_name


class UpsertError(DestinationError):
    """Lookup, create or update of a destination page failed."""
