"""shared async http client for talking to the mirror."""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from ..config import DEFAULT_TIMEOUT
from ..domain.errors import TransportError

logger = logging.getLogger(__name__)


class HttpClient:
    """
    thin wrapper around ``httpx.AsyncClient``.

    every request uses the same fixed timeout and every httpx failure comes
    out as a ``TransportError`` naming the url. there are no retries.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self.client.aclose()

    async def get_text(self, url: str) -> str:
        logger.debug("GET %s", url)
        try:
            response = await self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise self._translate(e, url) from e
        logger.debug("received %d bytes from %s", len(response.content), url)
        return response.text

    async def head(self, url: str) -> httpx.Headers:
        logger.debug("HEAD %s", url)
        try:
            response = await self.client.head(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise self._translate(e, url) from e
        return response.headers

    @asynccontextmanager
    async def stream(self, url: str) -> AsyncIterator[httpx.Response]:
        """open a streaming GET; the body is read by the caller via ``aiter_bytes``."""
        logger.debug("GET (stream) %s", url)
        try:
            async with self.client.stream("GET", url) as response:
                response.raise_for_status()
                yield response
        except httpx.HTTPError as e:
            raise self._translate(e, url) from e

    @staticmethod
    def _translate(error: httpx.HTTPError, url: str) -> TransportError:
        if isinstance(error, httpx.HTTPStatusError):
            status = error.response.status_code
            logger.error("HTTP %d for %s", status, url)
            return TransportError(f"HTTP {status} for {url}", url=url, status_code=status)
        if isinstance(error, httpx.TimeoutException):
            logger.error("request timed out for %s", url)
            return TransportError(f"request timed out for {url}", url=url)
        logger.error("request to %s failed: %s", url, error)
        return TransportError(f"request to {url} failed: {error}", url=url)
