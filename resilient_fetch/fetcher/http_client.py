"""Async HTTP client wrapper with default headers and JSON bodies."""

from typing import Any, Dict, Optional

import httpx


class AsyncHTTPClient:
    """
    Async HTTP client wrapper around httpx.AsyncClient.

    Provides:
    - Default headers merged under per-request headers
    - JSON-encoded request bodies
    - Injectable transport (httpx.MockTransport in tests)
    - Context manager for proper lifecycle management

    Timeouts are enforced by the retry handler per attempt, so the
    underlying client runs without its own deadline.
    """

    def __init__(
        self,
        default_headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize HTTP client.

        Args:
            default_headers: Headers sent with every request
            transport: Optional custom httpx transport
        """
        self.default_headers = dict(default_headers or {})
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        """Enter async context manager."""
        self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager."""
        await self.aclose()

    @property
    def is_open(self) -> bool:
        return self._client is not None

    def open(self) -> None:
        """Create the underlying httpx client if it does not exist yet."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=None,
                headers=self.default_headers,
                transport=self.transport
            )

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        json_body: Any = None,
        **kwargs
    ) -> httpx.Response:
        """
        Perform an HTTP request.

        Args:
            method: HTTP verb
            url: URL to request
            headers: Per-request headers (override defaults)
            json_body: JSON-encodable body; omitted when None
            **kwargs: Additional arguments for httpx

        Returns:
            HTTP response
        """
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        if json_body is not None:
            kwargs["json"] = json_body
        return await self._client.request(method, url, headers=headers, **kwargs)

    async def head(self, url: str, **kwargs) -> httpx.Response:
        """Perform HEAD request."""
        return await self.request("HEAD", url, **kwargs)
