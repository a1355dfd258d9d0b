"""Shared outbound HTTP client management."""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class HttpClientManager:
    """Owns the one ``httpx.AsyncClient`` every provider call goes through."""

    def __init__(self):
        self._client: Optional[httpx.AsyncClient] = None

    async def initialize(self, timeout: float) -> None:
        """Create the shared client. Calling it twice is a no-op."""
        if self._client is not None:
            return

        self._client = httpx.AsyncClient(timeout=timeout)
        logger.info(
            "HTTP client initialized",
            extra={"timeout_seconds": timeout}
        )

    def get_client(self) -> httpx.AsyncClient:
        """Get the shared client.

        Raises:
            RuntimeError: If called before ``initialize``
        """
        if self._client is None:
            raise RuntimeError("HTTP client used before initialization")
        return self._client

    async def close(self) -> None:
        """Close the shared client and release its connections."""
        if self._client is None:
            return

        await self._client.aclose()
        self._client = None
        logger.info("HTTP client closed")

    @property
    def is_initialized(self) -> bool:
        return self._client is not None
