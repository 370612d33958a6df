"""Parameterized queries and the lazy handles that wrap them."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Generator, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pghttp.errors import InvalidUsage
from pghttp.values import prepare_params

if TYPE_CHECKING:
    from pghttp.options import QueryOptions
    from pghttp.transport import QueryResult


@dataclass(frozen=True)
class ParameterizedQuery:
    """SQL text with ``$n`` placeholders plus the values bound to them."""

    text: str
    params: tuple[str | None, ...] = ()

    def to_json(self) -> dict[str, Any]:
        return {"query": self.text, "params": list(self.params)}


def build_query(strings: Sequence[str], values: Sequence[Any]) -> ParameterizedQuery:
    """Join literal segments, putting ``$1``, ``$2``... where values go.

    Values never become part of the SQL text; they are normalized and sent
    as parameters.

    Example:
        >>> build_query(["SELECT ", "::int + ", "::int AS n"], [1, 2])
        ParameterizedQuery(text='SELECT $1::int + $2::int AS n', params=('1', '2'))
    """
    if isinstance(strings, str):
        raise InvalidUsage("Template segments must be a sequence of strings, not a single string")
    if len(strings) != len(values) + 1:
        raise InvalidUsage(
            f"A template with {len(values)} values needs {len(values) + 1} literal segments, got {len(strings)}"
        )
    parts = [strings[0]]
    for i, segment in enumerate(strings[1:], start=1):
        parts.append(f"${i}")
        parts.append(segment)
    return ParameterizedQuery("".join(parts), prepare_params(values))


def explicit_query(text: str, params: Sequence[Any] | None = None) -> ParameterizedQuery:
    """Wrap SQL that already contains its own placeholders."""
    if not isinstance(text, str):
        raise InvalidUsage(f"Query text must be a string, got {type(text).__name__}")
    if params is None:
        params = ()
    if isinstance(params, (str, bytes)) or not isinstance(params, Sequence):
        raise InvalidUsage("Query params must be a list or tuple of values")
    return ParameterizedQuery(text, prepare_params(params))


def template_parts(template: Any) -> tuple[list[str], list[Any]]:
    """Split a template-string object into literal segments and values.

    Works with ``string.templatelib.Template`` (``t"..."`` literals) and
    anything else exposing ``strings`` and ``interpolations``.
    """
    strings = list(template.strings)
    values = [interpolation.value for interpolation in template.interpolations]
    return strings, values


def is_template(obj: Any) -> bool:
    return hasattr(obj, "strings") and hasattr(obj, "interpolations")


@dataclass(frozen=True, eq=False)
class LazyQuery:
    """A statement that has not been sent yet.

    Awaiting it sends it on its own, and every await sends it again. Passing
    it to ``HttpClient.transaction`` sends it as part of a batch instead; in
    that case it is never sent on its own.

    Example:
        >>> q = client("SELECT $1::int AS n", [1])
        >>> await q
        [{'n': 1}]
    """

    query: ParameterizedQuery
    options: QueryOptions | None
    _execute: Callable[[ParameterizedQuery, QueryOptions | None], Awaitable[QueryResult]]

    def execute(self) -> Awaitable[QueryResult]:
        return self._execute(self.query, self.options)

    def __await__(self) -> Generator[Any, None, QueryResult]:
        return self.execute().__await__()

    def __repr__(self) -> str:
        return f"LazyQuery({self.query.text!r}, params={list(self.query.params)!r})"


def is_lazy_query(obj: Any) -> bool:
    return isinstance(obj, LazyQuery)
