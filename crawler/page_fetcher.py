"""
Async page fetcher for monitored URLs.
Implements throttled HTTP GET requests with retry logic and exponential backoff.
"""

import asyncio
from typing import Optional

import httpx
import structlog
from asyncio_throttle import Throttler

from utilities.config import WatcherConfig, config as default_config
from utilities.logger import WatchLogger

logger = structlog.get_logger(__name__)


class PageFetcher:
    """
    Async fetcher returning the raw body of monitored pages.

    Use as an async context manager to share one HTTP client across a check
    cycle; without it every fetch opens its own client.
    """

    def __init__(
        self,
        settings: Optional[WatcherConfig] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize the fetcher.

        Args:
            settings: Watcher configuration (defaults to the global config)
            client: Pre-built HTTP client, mainly for tests
        """
        self.settings = settings or default_config
        self.watch_logger = WatchLogger("page_fetcher")
        self.throttler = Throttler(rate_limit=self.settings.rate_limit_per_second)
        self._client = client
        self._owns_client = False

        self.client_config = {
            "timeout": self.settings.request_timeout,
            "headers": self.settings.get_headers(),
            "follow_redirects": True,
            "limits": httpx.Limits(max_keepalive_connections=10, max_connections=20)
        }

    async def __aenter__(self) -> "PageFetcher":
        if self._client is None:
            self._client = httpx.AsyncClient(**self.client_config)
            self._owns_client = True
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client if this fetcher opened it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
            self._owns_client = False

    async def fetch(self, url: str) -> Optional[str]:
        """
        Fetch the body of a page.

        Args:
            url: Page URL

        Returns:
            Response body text, or None when every attempt failed
        """
        try:
            if self._client is not None:
                response = await self._request_with_retry(self._client, url)
            else:
                async with httpx.AsyncClient(**self.client_config) as client:
                    response = await self._request_with_retry(client, url)
        except httpx.HTTPError as e:
            logger.error("Failed to fetch page", url=url, error=str(e))
            return None

        logger.debug(
            "Fetched page",
            url=url,
            status_code=response.status_code,
            content_length=len(response.text)
        )
        return response.text

    async def _request_with_retry(self, client: httpx.AsyncClient, url: str) -> httpx.Response:
        """
        Make HTTP request with retry logic and exponential backoff.

        Args:
            client: HTTP client instance
            url: URL to request

        Returns:
            HTTP response
        """
        attempts = self.settings.retry_attempts
        last_exception = None

        for attempt in range(attempts + 1):
            try:
                async with self.throttler:
                    response = await client.get(url)
                response.raise_for_status()
                return response

            except httpx.HTTPError as e:
                last_exception = e

                if attempt < attempts:
                    delay = self.settings.retry_delay * (2 ** attempt)  # Exponential backoff
                    self.watch_logger.log_retry(url, attempt + 1, attempts, delay)
                    await asyncio.sleep(delay)
                else:
                    self.watch_logger.log_error(f"Request failed after {attempts} retries", url=url)

        raise last_exception
