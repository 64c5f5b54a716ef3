"""Exception hierarchy for OpenML Catalog Tools.

Each pipeline stage raises its own error type:
- InvalidFilter: bad listing constraints (local, never retried)
- NetworkError: transport failures, recoverable by a caller retry
- DecodeError: malformed catalog responses
- NotFound: valid request for an absent resource
- FetchError / FetchTimeout / StorageError: artifact cache failures
- FormatError: malformed ARFF content, with line context
- CoercionError: typed column assignment failures, with attribute/row context
"""

from __future__ import annotations

from typing import Optional


class OpenMLCatalogError(Exception):
    """Base exception for all package failures."""


class ConfigError(OpenMLCatalogError):
    """Raised for invalid settings files or values."""


class InvalidFilter(OpenMLCatalogError, ValueError):
    """Raised when listing constraints cannot be compiled."""


class NetworkError(OpenMLCatalogError):
    """Raised when the transport fails to retrieve a URL.

    Attributes:
        url: The URL that was requested.
        status_code: HTTP status when a response was received, else None.
        body: Response body when a response was received, else None.
    """

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        body: Optional[bytes] = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.body = body


class DecodeError(OpenMLCatalogError):
    """Raised when a catalog response does not match the expected schema."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason


class NotFound(OpenMLCatalogError):
    """Raised when the catalog reports that a resource does not exist."""


class FetchError(OpenMLCatalogError):
    """Raised when an artifact could not be fetched into the cache."""


class FetchTimeout(FetchError):
    """Raised to a waiter that gave up on an in-flight fetch."""


class StorageError(OpenMLCatalogError):
    """Raised for local cache read/write failures."""


class FormatError(OpenMLCatalogError):
    """Raised for malformed ARFF content.

    Attributes:
        line: 1-based line number in the artifact (0 when not line-specific).
        reason: Human-readable description of the problem.
    """

    def __init__(self, line: int, reason: str) -> None:
        super().__init__(f"line {line}: {reason}")
        self.line = line
        self.reason = reason


class CoercionError(OpenMLCatalogError):
    """Raised when a column cannot be given the requested scientific type."""

    def __init__(self, attribute: str, row: Optional[int], reason: str) -> None:
        where = f"attribute '{attribute}'"
        if row is not None:
            where += f", row {row}"
        super().__init__(f"{where}: {reason}")
        self.attribute = attribute
        self.row = row
        self.reason = reason


class TableError(OpenMLCatalogError):
    """Raised when typed columns cannot form a table."""


__all__ = [
    "OpenMLCatalogError",
    "ConfigError",
    "InvalidFilter",
    "NetworkError",
    "DecodeError",
    "NotFound",
    "FetchError",
    "FetchTimeout",
    "StorageError",
    "FormatError",
    "CoercionError",
    "TableError",
]
