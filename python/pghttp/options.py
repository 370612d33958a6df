"""Query and transaction options, and how the three option levels combine.

Most options can be set in three places:

* on the client, via ``create_client(url, **options)``,
* on a batch, via ``client.transaction(queries, options)``,
* on a single statement, via ``client(text, params, options)``.

A more specific level overrides a less specific one, key by key:

================== ======= =========== =========== =======
key                call    transaction client      default
================== ======= =========== =========== =======
array_mode         yes     yes         yes         False
full_results       yes     yes         yes         False
transport_options  merged  merged      merged      {}
isolation_level    no      yes         yes         None
read_only          no      yes         yes         None
deferrable         no      yes         yes         None
result_observer    yes     yes         yes         None
================== ======= =========== =========== =======

The transactional keys apply to a whole batch, so a single statement inside
a batch cannot change them.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pghttp.errors import InvalidUsage

if TYPE_CHECKING:
    from pghttp.query import ParameterizedQuery

type QueryObserver = Callable[[ParameterizedQuery], None]
type ResultObserver = Callable[[ParameterizedQuery, dict[str, Any], list[Any], dict[str, bool]], None]

BATCH_ISOLATION_HEADER = "Khulnasoft-Batch-Isolation-Level"
BATCH_READ_ONLY_HEADER = "Khulnasoft-Batch-Read-Only"
BATCH_DEFERRABLE_HEADER = "Khulnasoft-Batch-Deferrable"


class IsolationLevel(StrEnum):
    """Transaction isolation levels accepted by the gateway.

    Postgres runs ``ReadUncommitted`` as ``ReadCommitted``.
    """

    READ_UNCOMMITTED = "ReadUncommitted"
    READ_COMMITTED = "ReadCommitted"
    REPEATABLE_READ = "RepeatableRead"
    SERIALIZABLE = "Serializable"

    @classmethod
    def coerce(cls, value: IsolationLevel | str) -> IsolationLevel:
        try:
            return cls(value)
        except ValueError:
            choices = ", ".join(level.value for level in cls)
            raise InvalidUsage(f"Unknown isolation level {value!r}; expected one of {choices}") from None


@dataclass(frozen=True)
class QueryOptions:
    """Options for one statement. ``None`` means "not set at this level"."""

    array_mode: bool | None = None
    full_results: bool | None = None
    transport_options: Mapping[str, Any] | None = None
    query_observer: QueryObserver | None = None
    result_observer: ResultObserver | None = None


@dataclass(frozen=True)
class TransactionOptions(QueryOptions):
    """Options for a batch, or defaults for every call made by a client."""

    isolation_level: IsolationLevel | str | None = None
    read_only: bool | None = None
    deferrable: bool | None = None


@dataclass(frozen=True)
class ResolvedOptions:
    """The final option set for one call, after the cascade."""

    array_mode: bool = False
    full_results: bool = False
    transport_options: dict[str, Any] = field(default_factory=dict)
    isolation_level: IsolationLevel | None = None
    read_only: bool | None = None
    deferrable: bool | None = None
    result_observer: ResultObserver | None = None

    def for_statement(self, call: QueryOptions | None) -> ResolvedOptions:
        """Apply a statement's presentation options inside a batch.

        Transport options and the transactional keys stay batch-wide.
        """
        if call is None:
            return self
        return replace(
            self,
            array_mode=_pick(call.array_mode, self.array_mode),
            full_results=_pick(call.full_results, self.full_results),
            result_observer=_pick(call.result_observer, self.result_observer),
        )

    def batch_headers(self) -> dict[str, str]:
        """Headers that configure the implicit transaction of a batch."""
        headers: dict[str, str] = {}
        if self.isolation_level is not None:
            headers[BATCH_ISOLATION_HEADER] = self.isolation_level.value
        if self.read_only is not None:
            headers[BATCH_READ_ONLY_HEADER] = _bool_header(self.read_only)
        if self.deferrable is not None:
            headers[BATCH_DEFERRABLE_HEADER] = _bool_header(self.deferrable)
        return headers


def _pick(value: Any, fallback: Any) -> Any:
    return fallback if value is None else value


def _bool_header(value: bool) -> str:
    return "true" if value else "false"


def resolve_options(
    factory: TransactionOptions | None,
    transaction: TransactionOptions | None = None,
    call: QueryOptions | None = None,
) -> ResolvedOptions:
    """Merge client, batch and statement options into ``ResolvedOptions``.

    Pure: the inputs are not modified and the same inputs always give an
    equal result. Call-level transactional keys are ignored even when
    ``call`` is a ``TransactionOptions``.

    Example:
        >>> resolve_options(
        ...     TransactionOptions(array_mode=True, read_only=True),
        ...     TransactionOptions(array_mode=False),
        ... ).array_mode
        False
    """
    levels = [level for level in (factory, transaction) if level is not None]

    array_mode = False
    full_results = False
    transport_options: dict[str, Any] = {}
    isolation_level: IsolationLevel | str | None = None
    read_only: bool | None = None
    deferrable: bool | None = None
    result_observer: ResultObserver | None = None

    for level in levels:
        array_mode = _pick(level.array_mode, array_mode)
        full_results = _pick(level.full_results, full_results)
        result_observer = _pick(level.result_observer, result_observer)
        isolation_level = _pick(level.isolation_level, isolation_level)
        read_only = _pick(level.read_only, read_only)
        deferrable = _pick(level.deferrable, deferrable)
        if level.transport_options:
            transport_options = {**transport_options, **level.transport_options}

    if call is not None:
        array_mode = _pick(call.array_mode, array_mode)
        full_results = _pick(call.full_results, full_results)
        result_observer = _pick(call.result_observer, result_observer)
        if call.transport_options:
            transport_options = {**transport_options, **call.transport_options}

    return ResolvedOptions(
        array_mode=bool(array_mode),
        full_results=bool(full_results),
        transport_options=transport_options,
        isolation_level=IsolationLevel.coerce(isolation_level) if isolation_level is not None else None,
        read_only=read_only,
        deferrable=deferrable,
        result_observer=result_observer,
    )
