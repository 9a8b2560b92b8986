"""GTFS-RT feed fetcher."""

from __future__ import annotations

import hashlib
from typing import Any

import httpx

from gtfs_rt_poller.config import DEFAULT_USER_AGENT
from gtfs_rt_poller.logging import get_logger
from gtfs_rt_poller.services.gtfs_rt.errors import PollerError

logger = get_logger(__name__)


class FeedFetchError(PollerError):
    """Raised when the feed cannot be retrieved."""

    code = "fetch_failed"


class FeedFetcher:
    """Downloads a GTFS-RT protobuf feed with a browser identity.

    Some providers reject requests that do not look like a browser, so every
    request carries a fixed ``User-Agent``. There is a single attempt per call.
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_sec: float | None = None,
    ) -> None:
        self.user_agent = user_agent
        self.timeout_sec = timeout_sec

    def _client_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {
            "follow_redirects": True,
            "headers": {"User-Agent": self.user_agent},
        }
        # Without an override, httpx applies its own default timeout
        if self.timeout_sec is not None:
            options["timeout"] = httpx.Timeout(self.timeout_sec)
        return options

    async def fetch(self, url: str) -> bytes:
        """Download the raw feed payload.

        Args:
            url: Feed endpoint.

        Returns:
            The response body, unmodified.

        Raises:
            FeedFetchError: On an invalid URL or any transport or HTTP status
                failure.
        """
        if not url:
            msg = "Feed URL is not configured"
            raise FeedFetchError(msg)

        logger.info("Fetching GTFS-RT feed", url=url)
        try:
            async with httpx.AsyncClient(**self._client_options()) as client:
                response = await client.get(url)
                response.raise_for_status()
                data = response.content
        except httpx.HTTPStatusError as exc:
            msg = f"Feed request failed with HTTP {exc.response.status_code}: {url}"
            raise FeedFetchError(msg) from exc
        except httpx.RequestError as exc:
            msg = f"Feed request failed: {exc.__class__.__name__}: {exc}"
            raise FeedFetchError(msg) from exc
        except httpx.InvalidURL as exc:
            msg = f"Feed URL is invalid: {exc}: {url}"
            raise FeedFetchError(msg) from exc

        logger.info(
            "GTFS-RT feed downloaded",
            size_bytes=len(data),
            feed_hash=hashlib.sha256(data).hexdigest()[:12],
        )
        return data
