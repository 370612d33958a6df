"""Turning raw gateway results into typed rows."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pghttp.errors import ServerError

if TYPE_CHECKING:
    from pghttp.options import ResultObserver
    from pghttp.query import ParameterizedQuery
    from pghttp.types import TypeParsers


@dataclass(frozen=True)
class Field:
    """Column metadata from a result."""

    name: str
    type_id: int

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Field:
        type_id = data.get("dataTypeID", data.get("typeId", 0))
        return cls(name=data["name"], type_id=int(type_id))


@dataclass
class FullQueryResult:
    """Result returned when ``full_results`` is set.

    ``rows`` holds the parsed rows in the shape given by ``row_as_array``.
    ``via_http`` marks results produced by this client, as opposed to a
    socket driver.
    """

    command: str | None
    row_count: int | None
    fields: list[Field]
    rows: list[Any]
    row_as_array: bool
    via_http: bool = True
    extra: dict[str, Any] = field(default_factory=dict)


_KNOWN_KEYS = {"command", "rowCount", "fields", "rows"}

UNEXPECTED_FORMAT = "Unexpected result format from the query gateway"


def _check_shape(raw: Any) -> None:
    """Raise ``ServerError`` unless ``raw`` looks like one statement's result."""
    if not isinstance(raw, dict):
        raise ServerError(UNEXPECTED_FORMAT)
    fields = raw.get("fields") or []
    rows = raw.get("rows") or []
    if not isinstance(fields, list) or not isinstance(rows, list):
        raise ServerError(UNEXPECTED_FORMAT)
    for f in fields:
        if not isinstance(f, dict) or not isinstance(f.get("name"), str):
            raise ServerError(f"{UNEXPECTED_FORMAT}: field without a name")
        if not isinstance(f.get("dataTypeID", f.get("typeId", 0)), int):
            raise ServerError(f"{UNEXPECTED_FORMAT}: field {f['name']!r} has no numeric type id")
    for row in rows:
        if not isinstance(row, list) or len(row) != len(fields):
            raise ServerError(f"{UNEXPECTED_FORMAT}: row does not match its {len(fields)} fields")


def process_query_result(
    raw: dict[str, Any],
    *,
    query: ParameterizedQuery,
    array_mode: bool,
    full_results: bool,
    type_parsers: TypeParsers,
    result_observer: ResultObserver | None = None,
) -> list[Any] | FullQueryResult:
    """Parse one statement's raw result.

    Cells are parsed by column type. ``None`` cells stay ``None`` and never
    reach a parser. Rows are lists in array mode and dicts keyed by column
    name otherwise; both keep column order.

    Raises:
        ServerError: ``raw`` is not a result, or a row and the fields disagree.
    """
    _check_shape(raw)
    fields = [Field.from_json(f) for f in raw.get("fields") or []]
    names = [f.name for f in fields]
    parsers = [type_parsers.get_type_parser(f.type_id) for f in fields]
    raw_rows = raw.get("rows") or []

    if array_mode:
        rows: list[Any] = [
            [None if cell is None else parse(cell) for parse, cell in zip(parsers, row, strict=True)]
            for row in raw_rows
        ]
    else:
        rows = [
            {
                name: None if cell is None else parse(cell)
                for name, parse, cell in zip(names, parsers, row, strict=True)
            }
            for row in raw_rows
        ]

    if result_observer is not None:
        result_observer(query, raw, rows, {"array_mode": array_mode, "full_results": full_results})

    if full_results:
        return FullQueryResult(
            command=raw.get("command"),
            row_count=raw.get("rowCount"),
            fields=fields,
            rows=rows,
            row_as_array=array_mode,
            extra={k: v for k, v in raw.items() if k not in _KNOWN_KEYS},
        )
    return rows
