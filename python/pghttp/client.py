"""The client object: builds lazy queries and runs single statements and batches."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Sequence
from typing import Any

from pghttp.config import HttpConfig
from pghttp.connstring import ConnectionParameters, parse_connection_string
from pghttp.errors import InvalidConnectionString, InvalidUsage
from pghttp.options import QueryOptions, TransactionOptions, resolve_options
from pghttp.query import (
    LazyQuery,
    ParameterizedQuery,
    build_query,
    explicit_query,
    is_lazy_query,
    is_template,
    template_parts,
)
from pghttp.transport import HttpTransport, QueryResult
from pghttp.types import TypeParsers

logger = logging.getLogger(__name__)

TRANSACTION_ARG_ERROR = "transaction() expects a list of queries, or a function returning a list of queries"

type QueryBuilder = Callable[[HttpClient], Sequence[LazyQuery]]


class HttpClient:
    """Runs SQL over HTTP, one request per statement or per batch.

    Calling the client builds a ``LazyQuery``; awaiting that sends it.

    Example:
        >>> sql = create_client("postgresql://user:pw@db.example.com/main")
        >>> await sql("SELECT $1::int AS n", [1])
        [{'n': 1}]
        >>> await sql.template(["SELECT ", "::int AS n"], 1, options=QueryOptions(array_mode=True))
        [[1]]
        >>> await sql.transaction(lambda txn: [
        ...     txn("INSERT INTO users (name) VALUES ($1)", ["Ann"]),
        ...     txn("SELECT count(*) AS n FROM users"),
        ... ], TransactionOptions(isolation_level="Serializable"))
        [[], [{'n': 1}]]

    ``options`` holds the client-level defaults. It is read each time a
    query executes, so assigning a new value affects queries that were
    already built but not yet awaited.
    """

    def __init__(
        self,
        connection_string: str,
        params: ConnectionParameters,
        options: TransactionOptions | None = None,
        *,
        config: HttpConfig | None = None,
        type_parsers: TypeParsers | None = None,
    ) -> None:
        self.options = options or TransactionOptions()
        self.connection = params
        self._transport = HttpTransport(
            connection_string,
            params,
            config=config,
            type_parsers=type_parsers,
        )

    def __repr__(self) -> str:
        p = self.connection
        return f"<HttpClient {p.username}@{p.hostname}{p.path}>"

    # ========== Building queries ==========

    def __call__(
        self,
        query: Any,
        params: Sequence[Any] | None = None,
        options: QueryOptions | None = None,
    ) -> LazyQuery:
        """Build a query from SQL text and params, or from a template string.

        Example:
            >>> sql("SELECT * FROM users WHERE id = $1", [7])
            >>> sql(t"SELECT * FROM users WHERE id = {user_id}")  # Python 3.14+
        """
        if is_template(query):
            if params is not None:
                raise InvalidUsage("A template query carries its own values; do not pass params")
            strings, values = template_parts(query)
            return self._lazy(build_query(strings, values), options)
        return self._lazy(explicit_query(query, params), options)

    def template(self, strings: Sequence[str], *values: Any, options: QueryOptions | None = None) -> LazyQuery:
        """Build a query from literal segments with values between them.

        Example:
            >>> sql.template(["SELECT * FROM users WHERE id = ", ""], 7)
        """
        return self._lazy(build_query(strings, values), options)

    def _lazy(self, query: ParameterizedQuery, options: QueryOptions | None) -> LazyQuery:
        observer = (options.query_observer if options else None) or self.options.query_observer
        if observer is not None:
            observer(query)
        return LazyQuery(query, options, self._execute)

    async def query(self, text: str, params: Sequence[Any] | None = None, **options: Any) -> QueryResult:
        """Build and run a statement at once.

        Example:
            >>> await sql.query("SELECT 1 AS one", array_mode=True)
            [[1]]
        """
        return await self(text, params, QueryOptions(**options) if options else None)

    # ========== Execution ==========

    async def _execute(self, query: ParameterizedQuery, options: QueryOptions | None) -> QueryResult:
        resolved = resolve_options(self.options, None, options)
        return await self._transport.execute(query, resolved)

    async def transaction(
        self,
        queries: Sequence[LazyQuery] | QueryBuilder,
        options: TransactionOptions | None = None,
    ) -> list[QueryResult]:
        """Run several queries in one request, as one transaction.

        ``queries`` is a list of queries built by this client, or a function
        that receives the client and returns one. The gateway commits all of
        them or none of them. Nothing is sent if any item is not a query.
        """
        if callable(queries):
            queries = queries(self)

        if not isinstance(queries, (list, tuple)):
            raise InvalidUsage(TRANSACTION_ARG_ERROR)
        for position, item in enumerate(queries):
            if not is_lazy_query(item):
                raise InvalidUsage(f"{TRANSACTION_ARG_ERROR} (item {position} is {type(item).__name__})")

        if not queries:
            return []

        resolved = resolve_options(self.options, options)
        per_statement = [resolved.for_statement(q.options) for q in queries]
        logger.debug("Running batch of %d statements", len(queries))
        return await self._transport.execute_batch(
            [q.query for q in queries],
            resolved,
            per_statement,
        )


def create_client(
    url: str | None = None,
    *,
    config: HttpConfig | None = None,
    type_parsers: TypeParsers | None = None,
    **options: Any,
) -> HttpClient:
    """Create a client for the database at ``url``.

    Args:
        url: Connection string. Defaults to the ``DATABASE_URL`` environment
            variable.
        config: HTTP configuration for this client only. Defaults to the
            process-wide ``pghttp.http_config``, looked up per call.
        type_parsers: Type parsers for this client only. Defaults to the
            process-wide ``pghttp.types.default_type_parsers``, looked up per call.
        **options: Client-level ``TransactionOptions`` fields
            (``array_mode``, ``full_results``, ``transport_options``,
            ``isolation_level``, ``read_only``, ``deferrable``,
            ``query_observer``, ``result_observer``).

    Raises:
        InvalidConnectionString: If the connection string is missing or
            malformed. Nothing is sent over the network.

    Example:
        >>> sql = create_client("postgresql://user:pw@db.example.com/main", array_mode=True)
    """
    if url is None:
        url = os.environ.get("DATABASE_URL")
    if not url:
        raise InvalidConnectionString(
            "No database connection string was provided to create_client(). "
            "Perhaps an environment variable has not been set?",
            reason="missing",
        )
    params = parse_connection_string(url)
    try:
        client_options = TransactionOptions(**options)
    except TypeError as err:
        raise InvalidUsage(f"Unknown client option: {err}") from err
    resolve_options(client_options)
    return HttpClient(url, params, client_options, config=config, type_parsers=type_parsers)
