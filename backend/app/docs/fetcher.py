"""Retrieval of stored document bytes."""

import logging

import httpx

from backend.app.errors import ExtractionError

logger = logging.getLogger(__name__)


class HttpByteFetcher:
    """Downloads document bytes from their storage URL."""

    def __init__(self, client: httpx.AsyncClient, timeout_seconds: float = 60.0) -> None:
        self._client = client
        self._timeout = timeout_seconds

    async def fetch_bytes(self, url: str) -> bytes:
        """Fetch the full body at `url`.

        Raises:
            ExtractionError: On transport failure or a non-2xx status
        """
        try:
            response = await self._client.get(url, timeout=self._timeout, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(f"Document fetch returned {e.response.status_code}")
            raise ExtractionError() from e
        except httpx.HTTPError as e:
            logger.warning(f"Document fetch failed: {type(e).__name__}")
            raise ExtractionError() from e

        return response.content
