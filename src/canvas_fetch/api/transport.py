"""HTTP transport boundary.

The transport is the only code that touches the network. It never lets a
transport fault escape: connection errors, timeouts and other
``httpx.HTTPError`` failures become an envelope with no status.
"""

from __future__ import annotations

from typing import Protocol

import httpx

from canvas_fetch.logging import bind_url

from .schemas import RequestConfig, ResponseEnvelope


class Transport(Protocol):
    """Anything able to perform one exchange."""

    async def exchange(self, config: RequestConfig) -> ResponseEnvelope: ...

    async def aclose(self) -> None: ...


class HttpxTransport:
    """Transport backed by ``httpx.AsyncClient``.

    Usage:
        transport = HttpxTransport(timeout=30.0)
        envelope = await transport.exchange(config)
        await transport.aclose()
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the transport.

        Args:
            client: Optional preconfigured client. When omitted, one is
                    created lazily and closed by aclose().
            timeout: Per-exchange timeout in seconds for the owned client
        """
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    @property
    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def exchange(self, config: RequestConfig) -> ResponseEnvelope:
        """Perform one exchange and normalize the result."""
        try:
            response = await self._http.request(
                config.method.value,
                config.url,
                headers=config.headers,
                json=config.body,
            )
        except httpx.HTTPError as e:
            bind_url(config.url).error("Error during request: {}", e)
            return ResponseEnvelope.transport_failure()

        return ResponseEnvelope(
            status=response.status_code,
            headers=dict(response.headers.items()),
            data=_parse_body(response),
        )

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None


def _parse_body(response: httpx.Response) -> object:
    """JSON body when parseable, otherwise text (None when empty)."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
