"""Exception hierarchy for SQL-over-HTTP calls."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

# Wire keys of a query-failure payload, mapped to attribute names.
ERROR_FIELDS: dict[str, str] = {
    "severity": "severity",
    "code": "code",
    "detail": "detail",
    "hint": "hint",
    "position": "position",
    "internalPosition": "internal_position",
    "internalQuery": "internal_query",
    "where": "where",
    "schema": "schema",
    "table": "table",
    "column": "column",
    "dataType": "data_type",
    "constraint": "constraint",
    "file": "file",
    "line": "line",
    "routine": "routine",
}


class DbError(Exception):
    """Base class for every error raised by pghttp.

    Carries the same optional fields as a native Postgres error notice, so
    callers can inspect ``code``, ``constraint`` etc. regardless of how the
    error reached them.
    """

    severity: str | None = None
    code: str | None = None
    detail: str | None = None
    hint: str | None = None
    position: str | None = None
    internal_position: str | None = None
    internal_query: str | None = None
    where: str | None = None
    schema: str | None = None
    table: str | None = None
    column: str | None = None
    data_type: str | None = None
    constraint: str | None = None
    file: str | None = None
    line: str | None = None
    routine: str | None = None
    source_error: BaseException | None = None

    def __init__(self, message: str, **fields: Any) -> None:
        super().__init__(message)
        self.message = message
        for name, value in fields.items():
            if name != "source_error" and name not in ERROR_FIELDS.values():
                raise TypeError(f"Unknown error field: {name}")
            setattr(self, name, value)

    def fields(self) -> dict[str, Any]:
        """Return the error fields that are set."""
        names = [*ERROR_FIELDS.values(), "source_error"]
        return {name: getattr(self, name) for name in names if getattr(self, name) is not None}

    def __str__(self) -> str:
        return self.message


class InvalidUsage(DbError, ValueError):
    """The call itself is malformed. Never raised after a request was sent."""


class InvalidConnectionString(InvalidUsage):
    """The connection string is missing, unparseable or incomplete.

    ``reason`` is one of ``"missing"``, ``"invalid_url"`` or ``"incomplete"``.
    """

    def __init__(self, message: str, reason: str) -> None:
        super().__init__(message)
        self.reason = reason


class ConnectionError(DbError):  # noqa: A001
    """The request failed before any response was received."""

    prefix = "Error connecting to database: "

    def __init__(self, source_error: BaseException) -> None:
        detail = str(source_error) or type(source_error).__name__
        super().__init__(self.prefix + detail, source_error=source_error)

    @property
    def cancelled(self) -> bool:
        """True if the request was aborted through its cancellation signal."""
        return isinstance(self.source_error, asyncio.CancelledError)

    @property
    def timed_out(self) -> bool:
        return isinstance(self.source_error, httpx.TimeoutException)


class DatabaseError(DbError):
    """The database rejected the query (HTTP 400 from the gateway)."""

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> DatabaseError:
        """Build an error from a query-failure JSON body, field by field."""
        message = payload.get("message") or "Unknown database error"
        fields = {attr: payload.get(key) for key, attr in ERROR_FIELDS.items()}
        return cls(message, **fields)


class ServerError(DbError):
    """The gateway answered with an unexpected status or body."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    @classmethod
    def from_status(cls, status_code: int, body: str) -> ServerError:
        return cls(f"Server error (HTTP status {status_code}): {body}", status_code, body)
