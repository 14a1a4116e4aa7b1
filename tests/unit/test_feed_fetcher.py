"""
Feed Fetcher Tests
==================

HTTP retrieval and transport error mapping with a mocked aiohttp session.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from sarkarifeed.processing.feed_fetcher import FeedFetcher
from sarkarifeed.utils.exceptions import ErrorCode, FetchError, is_retryable_error

from conftest import SAMPLE_RSS_FEED


FEED_URL = "https://example.gov.in/rss.xml"


def make_session(status=200, body=b"", reason="OK", enter_error=None, get_error=None):
    """Mock aiohttp session whose ``get`` is an async context manager."""
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.reason = reason
    mock_response.history = ()
    mock_response.headers = {}
    mock_response.read = AsyncMock(return_value=body)

    context_manager = MagicMock()
    if enter_error is not None:
        context_manager.__aenter__ = AsyncMock(side_effect=enter_error)
    else:
        context_manager.__aenter__ = AsyncMock(return_value=mock_response)
    context_manager.__aexit__ = AsyncMock(return_value=False)

    mock_session = AsyncMock()
    if get_error is not None:
        mock_session.get = MagicMock(side_effect=get_error)
    else:
        mock_session.get = MagicMock(return_value=context_manager)
    return mock_session


class TestFeedFetcher:
    """Single-request fetch behaviour."""

    @pytest.fixture
    def fetcher(self, test_settings):
        return FeedFetcher(settings=test_settings)

    def test_defaults_from_settings(self, test_settings):
        fetcher = FeedFetcher(settings=test_settings)

        assert fetcher.max_concurrent == test_settings.ingestion.parallel_feeds
        assert fetcher.timeout == test_settings.limits.request_timeout

    def test_explicit_overrides(self, test_settings):
        fetcher = FeedFetcher(settings=test_settings, max_concurrent=7, timeout=3)

        assert fetcher.max_concurrent == 7
        assert fetcher.timeout == 3

    @pytest.mark.asyncio
    async def test_fetch_returns_raw_payload(self, fetcher):
        payload = SAMPLE_RSS_FEED.encode("utf-8")
        session = make_session(body=payload)

        result = await fetcher.fetch(FEED_URL, session)

        assert result == payload
        session.get.assert_called_once_with(FEED_URL)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,expected_code,retryable", [
        (404, ErrorCode.FEED_NOT_FOUND, False),
        (403, ErrorCode.FEED_ACCESS_DENIED, False),
        (401, ErrorCode.FEED_ACCESS_DENIED, False),
        (500, ErrorCode.FEED_HTTP_ERROR, True),
        (503, ErrorCode.FEED_HTTP_ERROR, True),
        (429, ErrorCode.FEED_HTTP_ERROR, True),
        (301, ErrorCode.FEED_HTTP_ERROR, False),
    ])
    async def test_non_200_status_raises(self, fetcher, status, expected_code, retryable):
        session = make_session(status=status, reason="Nope")

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch(FEED_URL, session)

        error = exc_info.value
        assert error.error_code == expected_code
        assert error.feed_url == FEED_URL
        assert error.context["status"] == status
        assert f"HTTP {status}" in error.message
        assert is_retryable_error(error) is retryable

    @pytest.mark.asyncio
    async def test_non_200_status_carries_response_error(self, fetcher):
        session = make_session(status=503, reason="Service Unavailable")

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch(FEED_URL, session)

        error = exc_info.value
        assert isinstance(error.cause, aiohttp.ClientResponseError)
        assert error.cause.status == 503
        assert error.cause.message == "Service Unavailable"
        assert error.__cause__ is error.cause
        assert error.context["cause"].startswith("ClientResponseError: 503")

    @pytest.mark.asyncio
    async def test_timeout_raises_fetch_error(self, fetcher):
        session = make_session(enter_error=asyncio.TimeoutError())

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch(FEED_URL, session)

        assert exc_info.value.error_code == ErrorCode.FEED_FETCH_TIMEOUT
        assert isinstance(exc_info.value.cause, asyncio.TimeoutError)
        assert is_retryable_error(exc_info.value)

    @pytest.mark.asyncio
    async def test_network_error_raises_fetch_error(self, fetcher):
        cause = aiohttp.ClientConnectionError("connection refused")
        session = make_session(get_error=cause)

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch(FEED_URL, session)

        assert exc_info.value.error_code == ErrorCode.FEED_NETWORK_ERROR
        assert exc_info.value.cause is cause
        assert "connection refused" in exc_info.value.context["cause"]

    @pytest.mark.asyncio
    async def test_error_while_reading_body(self, fetcher):
        session = make_session()
        response = await session.get(FEED_URL).__aenter__()
        response.read = AsyncMock(side_effect=aiohttp.ClientPayloadError("truncated"))
        session.get.reset_mock()

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch(FEED_URL, session)

        assert exc_info.value.error_code == ErrorCode.FEED_NETWORK_ERROR

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["", "ftp://example.gov.in/feed", "not a url"])
    async def test_invalid_url_rejected_without_request(self, fetcher, url):
        session = make_session()

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch(url, session)

        assert exc_info.value.error_code == ErrorCode.FEED_INVALID_URL
        assert not is_retryable_error(exc_info.value)
        session.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_session_configured(self, fetcher):
        async with fetcher.get_session() as session:
            assert isinstance(session, aiohttp.ClientSession)
            assert not session.closed
            assert "application/rss+xml" in session.headers["Accept"]
            assert session.timeout.total == fetcher.timeout

        assert session.closed
