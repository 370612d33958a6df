"""One-request-per-call HTTP transport to the query gateway."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Coroutine, Sequence
from typing import TYPE_CHECKING, Any

from pghttp import config as config_module
from pghttp import types as types_module
from pghttp.errors import ConnectionError, DatabaseError, ServerError
from pghttp.results import UNEXPECTED_FORMAT, FullQueryResult, process_query_result

if TYPE_CHECKING:
    from pghttp.config import GatewayResponse, HttpConfig
    from pghttp.connstring import ConnectionParameters
    from pghttp.options import ResolvedOptions
    from pghttp.query import ParameterizedQuery
    from pghttp.types import TypeParsers

logger = logging.getLogger(__name__)

CONNECTION_STRING_HEADER = "Khulnasoft-Connection-String"
RAW_TEXT_OUTPUT_HEADER = "Khulnasoft-Raw-Text-Output"
ARRAY_MODE_HEADER = "Khulnasoft-Array-Mode"

# Transport option carrying an asyncio.Event that aborts the request when set.
CANCEL_OPTION = "cancel"

QUERY_FAILURE_STATUS = 400

type QueryResult = list[Any] | FullQueryResult


class HttpTransport:
    """Sends parameterized queries to the gateway and parses the answers.

    ``config`` and ``type_parsers`` may be given explicitly; when omitted
    the process-wide instances are looked up on every call.
    """

    def __init__(
        self,
        connection_string: str,
        params: ConnectionParameters,
        *,
        config: HttpConfig | None = None,
        type_parsers: TypeParsers | None = None,
    ) -> None:
        self._connection_string = connection_string
        self._params = params
        self._config = config
        self._type_parsers = type_parsers

    @property
    def config(self) -> HttpConfig:
        if self._config is not None:
            return self._config
        return config_module.http_config

    @property
    def type_parsers(self) -> TypeParsers:
        if self._type_parsers is not None:
            return self._type_parsers
        return types_module.default_type_parsers

    def url(self) -> str:
        return self.config.endpoint_for(self._params.hostname, self._params.port)

    def headers(self, resolved: ResolvedOptions, *, batch: bool) -> dict[str, str]:
        # Rows always travel as arrays of raw text; shaping and parsing
        # happen client side.
        headers = {
            CONNECTION_STRING_HEADER: self._connection_string,
            RAW_TEXT_OUTPUT_HEADER: "true",
            ARRAY_MODE_HEADER: "true",
            "Content-Type": "application/json",
        }
        if batch:
            headers.update(resolved.batch_headers())
        return headers

    async def execute(self, query: ParameterizedQuery, resolved: ResolvedOptions) -> QueryResult:
        """Run a single statement."""
        body = await self._post(query.to_json(), resolved, batch=False)
        return process_query_result(
            body,
            query=query,
            array_mode=resolved.array_mode,
            full_results=resolved.full_results,
            type_parsers=self.type_parsers,
            result_observer=resolved.result_observer,
        )

    async def execute_batch(
        self,
        queries: Sequence[ParameterizedQuery],
        resolved: ResolvedOptions,
        per_statement: Sequence[ResolvedOptions],
    ) -> list[QueryResult]:
        """Run several statements as one implicit transaction on the server."""
        body = await self._post({"queries": [q.to_json() for q in queries]}, resolved, batch=True)
        results = body.get("results")
        if not isinstance(results, list) or len(results) != len(queries):
            raise ServerError(UNEXPECTED_FORMAT)

        parsers = self.type_parsers
        return [
            process_query_result(
                raw,
                query=query,
                array_mode=opts.array_mode,
                full_results=opts.full_results,
                type_parsers=parsers,
                result_observer=opts.result_observer,
            )
            for raw, query, opts in zip(results, queries, per_statement, strict=True)
        ]

    async def _post(self, payload: dict[str, Any], resolved: ResolvedOptions, *, batch: bool) -> Any:
        config = self.config
        url = self.url()
        transport_options = dict(resolved.transport_options)
        cancel = transport_options.pop(CANCEL_OPTION, None)
        request = {
            "method": "POST",
            "content": json.dumps(payload),
            "headers": self.headers(resolved, batch=batch),
            **transport_options,
        }

        logger.debug(
            "Sending %s to %s",
            f"batch of {len(payload['queries'])} statements" if batch else "single statement",
            url,
        )
        try:
            response = await _send(config.fetch(url, **request), cancel)
        except ConnectionError:
            raise
        except Exception as err:
            raise ConnectionError(err) from err

        status = response.status_code
        logger.debug("Gateway answered with HTTP %d", status)
        if 200 <= status < 300:
            return _read_json(response, status)
        if status == QUERY_FAILURE_STATUS:
            raise DatabaseError.from_payload(_read_json(response, status))
        logger.warning("Unexpected HTTP status %d from query gateway at %s", status, url)
        raise ServerError.from_status(status, response.text)


async def _send(request: Coroutine[Any, Any, GatewayResponse], cancel: asyncio.Event | None) -> GatewayResponse:
    """Await ``request``, aborting it if ``cancel`` is set first.

    An abort raises ``ConnectionError`` whose ``source_error`` is an
    ``asyncio.CancelledError``. Cancelling the calling task is not an abort
    and propagates as usual.
    """
    if cancel is None:
        return await request
    if cancel.is_set():
        request.close()
        raise ConnectionError(asyncio.CancelledError("request cancelled before it was sent"))

    fetch = asyncio.ensure_future(request)
    watcher = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({fetch, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        watcher.cancel()
        if not fetch.done():
            fetch.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await fetch

    if fetch.cancelled():
        raise ConnectionError(asyncio.CancelledError("request cancelled by its cancellation signal"))
    return fetch.result()


def _read_json(response: GatewayResponse, status: int) -> Any:
    try:
        body = response.json()
    except ValueError as err:
        raise ServerError.from_status(status, response.text) from err
    if not isinstance(body, dict):
        raise ServerError(UNEXPECTED_FORMAT, status, response.text)
    return body
