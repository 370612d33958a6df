"""Process-wide HTTP configuration.

``http_config`` is read every time a query executes, so changes to it take
effect for queries that were built but not yet awaited. Changing it while
queries are in flight gives no ordering guarantee for those queries; pass a
dedicated ``HttpConfig`` to ``create_client(config=...)`` to avoid sharing.
"""

from __future__ import annotations

import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

import httpx


class GatewayResponse(Protocol):
    """What the transport needs from a response. ``httpx.Response`` fits."""

    status_code: int

    @property
    def text(self) -> str: ...

    def json(self, **kwargs: Any) -> Any: ...


type FetchEndpoint = str | Callable[[str, int | None], str]
type FetchFunction = Callable[..., Awaitable[GatewayResponse]]


def default_fetch_endpoint(host: str, port: int | None) -> str:
    return f"https://{host}/sql"


@dataclass
class HttpConfig:
    """Where queries are sent and how.

    Attributes:
        fetch_endpoint: Gateway URL, or a callable ``(host, port) -> url``.
        fetch_function: Optional coroutine function called as
            ``fetch_function(url, method=..., content=..., headers=...,
            **transport_options)`` that replaces the built-in httpx call.
        http_transport: Optional httpx transport used by the built-in call.
    """

    fetch_endpoint: FetchEndpoint = default_fetch_endpoint
    fetch_function: FetchFunction | None = None
    http_transport: httpx.AsyncBaseTransport | None = None

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> HttpConfig:
        """Build a config honouring ``PGHTTP_FETCH_ENDPOINT`` if set."""
        environ = os.environ if environ is None else environ
        endpoint = environ.get("PGHTTP_FETCH_ENDPOINT")
        if endpoint:
            return cls(fetch_endpoint=endpoint)
        return cls()

    def endpoint_for(self, host: str, port: int | None) -> str:
        if callable(self.fetch_endpoint):
            return self.fetch_endpoint(host, port)
        return self.fetch_endpoint

    async def fetch(self, url: str, **request: Any) -> GatewayResponse:
        if self.fetch_function is not None:
            return await self.fetch_function(url, **request)
        async with httpx.AsyncClient(transport=self.http_transport) as client:
            method = request.pop("method")
            response = await client.request(method, url, **request)
            await response.aread()
            return response


http_config = HttpConfig.from_env()


def set_http_config(config: HttpConfig) -> HttpConfig:
    """Replace the process-wide config and return the previous one.

    Rebinding ``pghttp.http_config`` has no effect on queries; use this, or
    change attributes of the current instance.
    """
    global http_config
    previous, http_config = http_config, config
    return previous
