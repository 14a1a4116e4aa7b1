"""
Feed Fetcher
============

Retrieves raw syndication payloads over HTTP(S) with aiohttp.

Exactly one request is made per call. Retry policy belongs to the caller;
every transport failure surfaces as ``FetchError`` so it can be attributed
to the feed that produced it.
"""

import asyncio
import ssl
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import aiohttp
import certifi

from ..config.settings import SarkariFeedSettings, get_settings
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import ErrorCode, FetchError, ValidationError
from ..utils.validators import URLValidator


class FeedFetcher:
    """HTTP fetcher for feed documents."""

    USER_AGENT = "SarkariFeed/1.0 (+https://github.com/sarkarifeed/sarkarifeed)"

    def __init__(
        self,
        settings: Optional[SarkariFeedSettings] = None,
        max_concurrent: Optional[int] = None,
        timeout: Optional[int] = None,
    ):
        """Initialize feed fetcher.

        Args:
            settings: Application settings (default: global settings)
            max_concurrent: Connection pool sizing hint (default from config)
            timeout: Request timeout in seconds (default from config)
        """
        settings = settings or get_settings()
        self.max_concurrent = max_concurrent or settings.ingestion.parallel_feeds
        self.timeout = timeout or settings.limits.request_timeout
        self.logger = get_logger_for_component("feed_fetcher")

        # SSL context for secure requests
        self.ssl_context = ssl.create_default_context(cafile=certifi.where())

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[aiohttp.ClientSession]:
        """Get configured aiohttp session."""
        connector = aiohttp.TCPConnector(
            ssl=self.ssl_context,
            limit=self.max_concurrent * 2,
            limit_per_host=5,
            enable_cleanup_closed=True,
        )

        timeout = aiohttp.ClientTimeout(total=self.timeout)

        headers = {
            "User-Agent": self.USER_AGENT,
            "Accept": "application/rss+xml, application/atom+xml, application/xml, text/xml, */*",
            "Accept-Encoding": "gzip, deflate",
        }

        async with aiohttp.ClientSession(
            connector=connector, timeout=timeout, headers=headers
        ) as session:
            yield session

    async def fetch(self, feed_url: str, session: aiohttp.ClientSession) -> bytes:
        """Fetch the raw payload of one feed.

        Args:
            feed_url: URL of the feed
            session: aiohttp session for requests

        Returns:
            Response body, undecoded; feedparser handles character sets

        Raises:
            FetchError: On an invalid URL, a non-200 status, a timeout or a
                network failure
        """
        try:
            validated_url = URLValidator.validate_feed_url(feed_url)
        except ValidationError as e:
            raise FetchError(
                f"Invalid feed URL: {e.message}",
                feed_url=feed_url,
                cause=e,
                error_code=ErrorCode.FEED_INVALID_URL,
                recoverable=False,
            ) from e

        self.logger.debug(f"Fetching feed: {validated_url}")

        try:
            async with session.get(validated_url) as response:
                if response.status != 200:
                    status_error = aiohttp.ClientResponseError(
                        response.request_info,
                        response.history,
                        status=response.status,
                        message=response.reason or "",
                        headers=response.headers,
                    )
                    raise FetchError(
                        f"HTTP {response.status}: {response.reason}",
                        feed_url=feed_url,
                        cause=status_error,
                        error_code=self._status_error_code(response.status),
                        context={"status": response.status},
                        recoverable=response.status >= 500 or response.status == 429,
                    ) from status_error

                payload = await response.read()

        except asyncio.TimeoutError as e:
            raise FetchError(
                f"Request timeout after {self.timeout}s",
                feed_url=feed_url,
                cause=e,
                error_code=ErrorCode.FEED_FETCH_TIMEOUT,
            ) from e

        except aiohttp.ClientError as e:
            raise FetchError(
                f"Network error: {e}",
                feed_url=feed_url,
                cause=e,
                error_code=ErrorCode.FEED_NETWORK_ERROR,
            ) from e

        self.logger.debug(f"Fetched {len(payload)} bytes from {validated_url}")
        return payload

    @staticmethod
    def _status_error_code(status: int) -> ErrorCode:
        if status == 404:
            return ErrorCode.FEED_NOT_FOUND
        if status in (401, 403):
            return ErrorCode.FEED_ACCESS_DENIED
        return ErrorCode.FEED_HTTP_ERROR
