"""pghttp - Postgres queries and batched transactions over HTTP.

``http_config`` and ``default_type_parsers`` always name the current
process-wide instances. Replace them with ``set_http_config`` and
``set_default_type_parsers``; assigning to the package attributes does not
reach the transport.
"""

from __future__ import annotations

from typing import Any

from pghttp import config as _config
from pghttp import types as _types
from pghttp.client import HttpClient, create_client
from pghttp.config import HttpConfig, set_http_config
from pghttp.connstring import ConnectionParameters, parse_connection_string
from pghttp.errors import (
    ConnectionError,
    DatabaseError,
    DbError,
    InvalidConnectionString,
    InvalidUsage,
    ServerError,
)
from pghttp.options import (
    IsolationLevel,
    QueryOptions,
    ResolvedOptions,
    TransactionOptions,
    resolve_options,
)
from pghttp.query import LazyQuery, ParameterizedQuery
from pghttp.results import Field, FullQueryResult
from pghttp.types import TypeParsers, get_type_parser, set_default_type_parsers, set_type_parser
from pghttp.values import prepare_value

__version__ = "0.1.0"


def __getattr__(name: str) -> Any:
    if name == "http_config":
        return _config.http_config
    if name == "default_type_parsers":
        return _types.default_type_parsers
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    # Core
    "create_client",
    "HttpClient",
    "LazyQuery",
    "ParameterizedQuery",
    # Options
    "QueryOptions",
    "TransactionOptions",
    "ResolvedOptions",
    "IsolationLevel",
    "resolve_options",
    # Results
    "Field",
    "FullQueryResult",
    # Errors
    "DbError",
    "InvalidUsage",
    "InvalidConnectionString",
    "ConnectionError",
    "DatabaseError",
    "ServerError",
    # Process-wide configuration
    "HttpConfig",
    "http_config",
    "set_http_config",
    "TypeParsers",
    "default_type_parsers",
    "set_default_type_parsers",
    "get_type_parser",
    "set_type_parser",
    # Collaborators
    "ConnectionParameters",
    "parse_connection_string",
    "prepare_value",
]
