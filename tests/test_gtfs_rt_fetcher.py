"""Tests for GTFS-RT feed fetcher."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from gtfs_rt_poller.config import DEFAULT_USER_AGENT
from gtfs_rt_poller.services.gtfs_rt.fetcher import FeedFetcher, FeedFetchError

from fixtures.gtfs_rt_fixture import build_trip_update_feed

FEED_URL = "https://example.com/feed"


def _mock_client(mock_client: MagicMock, get: AsyncMock) -> AsyncMock:
    instance = AsyncMock()
    instance.get = get
    instance.__aenter__ = AsyncMock(return_value=instance)
    instance.__aexit__ = AsyncMock(return_value=False)
    mock_client.return_value = instance
    return instance


def _ok_response(content: bytes) -> MagicMock:
    response = MagicMock()
    response.content = content
    response.raise_for_status = MagicMock(return_value=None)
    return response


class TestFeedFetcher:
    """Unit tests for FeedFetcher."""

    @pytest.mark.asyncio
    async def test_fetch_success(self) -> None:
        expected_data = build_trip_update_feed()
        fetcher = FeedFetcher()

        with patch("gtfs_rt_poller.services.gtfs_rt.fetcher.httpx.AsyncClient") as mock_client:
            instance = _mock_client(mock_client, AsyncMock(return_value=_ok_response(expected_data)))

            data = await fetcher.fetch(FEED_URL)

        assert data == expected_data
        instance.get.assert_awaited_once_with(FEED_URL)

    @pytest.mark.asyncio
    async def test_fetch_sends_browser_user_agent(self) -> None:
        fetcher = FeedFetcher()

        with patch("gtfs_rt_poller.services.gtfs_rt.fetcher.httpx.AsyncClient") as mock_client:
            _mock_client(mock_client, AsyncMock(return_value=_ok_response(b"x")))
            await fetcher.fetch(FEED_URL)

        headers = mock_client.call_args.kwargs["headers"]
        assert headers["User-Agent"] == DEFAULT_USER_AGENT
        assert headers["User-Agent"].startswith("Mozilla/5.0")

    @pytest.mark.asyncio
    async def test_custom_user_agent_and_timeout(self) -> None:
        fetcher = FeedFetcher(user_agent="agent/1.0", timeout_sec=7)

        with patch("gtfs_rt_poller.services.gtfs_rt.fetcher.httpx.AsyncClient") as mock_client:
            _mock_client(mock_client, AsyncMock(return_value=_ok_response(b"x")))
            await fetcher.fetch(FEED_URL)

        kwargs = mock_client.call_args.kwargs
        assert kwargs["headers"]["User-Agent"] == "agent/1.0"
        assert kwargs["timeout"] == httpx.Timeout(7)

    @pytest.mark.asyncio
    async def test_default_timeout_left_to_httpx(self) -> None:
        fetcher = FeedFetcher()

        with patch("gtfs_rt_poller.services.gtfs_rt.fetcher.httpx.AsyncClient") as mock_client:
            _mock_client(mock_client, AsyncMock(return_value=_ok_response(b"x")))
            await fetcher.fetch(FEED_URL)

        assert "timeout" not in mock_client.call_args.kwargs

    @pytest.mark.asyncio
    async def test_empty_body_is_returned(self) -> None:
        fetcher = FeedFetcher()

        with patch("gtfs_rt_poller.services.gtfs_rt.fetcher.httpx.AsyncClient") as mock_client:
            _mock_client(mock_client, AsyncMock(return_value=_ok_response(b"")))
            data = await fetcher.fetch(FEED_URL)

        assert data == b""

    @pytest.mark.asyncio
    async def test_fetch_http_error_not_retried(self) -> None:
        fetcher = FeedFetcher()

        response = MagicMock()
        response.raise_for_status = MagicMock(
            side_effect=httpx.HTTPStatusError(
                "Forbidden",
                request=httpx.Request("GET", FEED_URL),
                response=httpx.Response(403),
            )
        )

        with patch("gtfs_rt_poller.services.gtfs_rt.fetcher.httpx.AsyncClient") as mock_client:
            instance = _mock_client(mock_client, AsyncMock(return_value=response))

            with pytest.raises(FeedFetchError, match="HTTP 403") as exc_info:
                await fetcher.fetch(FEED_URL)

        assert instance.get.await_count == 1
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)

    @pytest.mark.asyncio
    async def test_fetch_network_error(self) -> None:
        fetcher = FeedFetcher()
        get = AsyncMock(
            side_effect=httpx.ConnectError(
                "Connection refused",
                request=httpx.Request("GET", FEED_URL),
            )
        )

        with patch("gtfs_rt_poller.services.gtfs_rt.fetcher.httpx.AsyncClient") as mock_client:
            instance = _mock_client(mock_client, get)

            with pytest.raises(FeedFetchError, match="ConnectError"):
                await fetcher.fetch(FEED_URL)

        assert instance.get.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_url_raises_without_request(self) -> None:
        fetcher = FeedFetcher()

        with patch("gtfs_rt_poller.services.gtfs_rt.fetcher.httpx.AsyncClient") as mock_client:
            with pytest.raises(FeedFetchError, match="not configured"):
                await fetcher.fetch("")

        mock_client.assert_not_called()

    @pytest.mark.asyncio
    async def test_malformed_url_is_fetch_failure(self) -> None:
        fetcher = FeedFetcher()

        with pytest.raises(FeedFetchError, match="invalid") as exc_info:
            await fetcher.fetch("http://[::1")

        assert isinstance(exc_info.value.__cause__, httpx.InvalidURL)
