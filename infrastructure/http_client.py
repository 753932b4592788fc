"""Shared async HTTP client with bounded timeouts and a pooled connection set."""

from typing import Any, Optional

import httpx


class HttpClient:
    """Thin async wrapper around httpx.AsyncClient with configurable timeouts.

    One instance per external service keeps timeouts independently configurable.
    The underlying pool is safe to share across concurrent requests; idle
    connections are evicted after ``pool_idle_timeout`` seconds.
    """

    def __init__(
        self,
        timeout: float = 5.0,
        connect_timeout: float = 5.0,
        pool_idle_timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            limits=httpx.Limits(keepalive_expiry=pool_idle_timeout),
            transport=transport,
        )

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._client.post(url, **kwargs)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._client.get(url, **kwargs)

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
