"""Type parsers for raw text cells returned by the gateway.

Cells arrive in Postgres' text output format. Each column's type OID selects
a parser; by default that is psycopg's text loader for the OID, and any OID
can be overridden with ``set_type_parser``.

The module-level registry is process-wide state. Clients read it when a
result is processed, not when a query is built, so an override installed
after a query handle was created still applies to that handle.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from psycopg.adapt import Transformer
from psycopg.pq import Format

TypeParser = Callable[[str], Any]


class TypeParsers:
    """A registry mapping type OIDs to text parsers.

    Example:
        >>> parsers = TypeParsers()
        >>> parsers.get_type_parser(23)("42")
        42
        >>> parsers.set_type_parser(1700, float)
        >>> parsers.get_type_parser(1700)("1.5")
        1.5
    """

    def __init__(self, overrides: dict[int, TypeParser] | None = None) -> None:
        self._overrides: dict[int, TypeParser] = dict(overrides or {})
        self._transformer = Transformer(None)

    def set_type_parser(self, type_id: int, parser: TypeParser) -> None:
        self._overrides[type_id] = parser

    def reset_type_parser(self, type_id: int) -> None:
        """Drop an override, going back to the default parser."""
        self._overrides.pop(type_id, None)

    def get_type_parser(self, type_id: int) -> TypeParser:
        if type_id in self._overrides:
            return self._overrides[type_id]
        loader = self._transformer.get_loader(type_id, Format.TEXT)

        def parse(cell: str) -> Any:
            return loader.load(cell.encode())

        return parse


default_type_parsers = TypeParsers()


def get_type_parser(type_id: int) -> TypeParser:
    return default_type_parsers.get_type_parser(type_id)


def set_type_parser(type_id: int, parser: TypeParser) -> None:
    default_type_parsers.set_type_parser(type_id, parser)


def set_default_type_parsers(parsers: TypeParsers) -> TypeParsers:
    """Replace the process-wide registry and return the previous one."""
    global default_type_parsers
    previous, default_type_parsers = default_type_parsers, parsers
    return previous
