"""
Page Fetcher - Download linked web pages for expansion

Uses a desktop Firefox User-Agent so sites that reject default client or bot
signatures still serve the page.
"""

import httpx
import logging
from typing import Optional

from lurch.exceptions import PageFetchError

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:58.0) Gecko/20100101 Firefox/58.0"
)


class PageFetcher:
    """Async client for downloading raw page bytes"""

    def __init__(self, timeout: float = 15, client: Optional[httpx.AsyncClient] = None):
        self.timeout = httpx.Timeout(timeout)
        self.client = client

    async def __aenter__(self):
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_client(self):
        """Ensure async client is initialized"""
        if not self.client:
            self.client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"User-Agent": USER_AGENT},
                follow_redirects=True,
            )

    async def fetch(self, url: str) -> bytes:
        """
        Download a page.

        Args:
            url: Absolute http(s) URL

        Returns:
            Response body as bytes

        Raises:
            PageFetchError: On malformed URLs, transport errors or a non-2xx status
        """
        await self._ensure_client()

        logger.info(f"Fetching page: {url[:100]}")
        # Unparseable hosts and ports surface as InvalidURL or ValueError (idna)
        try:
            response = await self.client.get(url, headers={"User-Agent": USER_AGENT})
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            raise PageFetchError(f"Failed to fetch {url}: {e}")

        if not 200 <= response.status_code < 300:
            raise PageFetchError(
                f"Fetching {url} returned status {response.status_code}"
            )

        logger.info(f"Downloaded {len(response.content)} bytes from {url[:100]}")
        return response.content

    async def close(self):
        """Close the async client"""
        if self.client:
            await self.client.aclose()
            self.client = None
