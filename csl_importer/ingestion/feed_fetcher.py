"""
Feed Fetcher
============

Retrieves the raw bytes of the feed document over HTTP(S).

A fetch is a single GET with a bounded timeout. There are no internal
retries: a failed fetch raises FeedFetchError and the scheduler decides when
to try again.
"""

import time
from typing import Optional

import requests

from ..config.settings import ImporterSettings, get_settings
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import FeedFetchError, ValidationError, ErrorCode
from ..utils.validators import URLValidator

ACCEPT_HEADER = "application/rss+xml, application/xml, text/xml;q=0.9, */*;q=0.8"


class FeedFetcher:
    """Fetches feed documents with a shared requests session."""

    def __init__(
        self,
        timeout: Optional[int] = None,
        user_agent: Optional[str] = None,
        session: Optional[requests.Session] = None,
        settings: Optional[ImporterSettings] = None,
    ):
        """Initialize feed fetcher.

        Args:
            timeout: Request timeout in seconds (default from settings)
            user_agent: User-Agent header (default from settings)
            session: Session to reuse, mostly for tests
            settings: Settings used for unset defaults
        """
        if timeout is None or user_agent is None:
            settings = settings or get_settings()
            timeout = timeout if timeout is not None else settings.limits.request_timeout
            user_agent = user_agent or settings.feed.user_agent

        self.timeout = timeout
        self.logger = get_logger_for_component("feed_fetcher")

        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "User-Agent": user_agent,
                "Accept": ACCEPT_HEADER,
            }
        )

    def fetch(self, url: str) -> bytes:
        """Fetch the feed document.

        Args:
            url: Feed URL

        Returns:
            Raw response body, never empty

        Raises:
            FeedFetchError: On invalid URL, timeout, connection failure,
                non-2xx status or an empty body
        """
        try:
            feed_url = URLValidator.validate_feed_url(url)
        except ValidationError as e:
            raise FeedFetchError(
                f"Invalid feed URL: {url}",
                feed_url=url,
                error_code=ErrorCode.FEED_INVALID_URL,
                recoverable=False,
            ) from e

        self.logger.info(f"Fetching RSS feed: {feed_url}")
        start_time = time.time()

        try:
            response = self.session.get(feed_url, timeout=self.timeout)
        except requests.Timeout as e:
            raise FeedFetchError(
                f"Request timeout after {self.timeout}s: {feed_url}",
                feed_url=feed_url,
                error_code=ErrorCode.FEED_FETCH_TIMEOUT,
            ) from e
        except requests.RequestException as e:
            raise FeedFetchError(
                f"Failed to fetch feed {feed_url}: {e}",
                feed_url=feed_url,
                error_code=ErrorCode.FEED_NETWORK_ERROR,
            ) from e

        if not 200 <= response.status_code < 300:
            raise FeedFetchError(
                f"HTTP {response.status_code} fetching {feed_url}",
                feed_url=feed_url,
                error_code=ErrorCode.FEED_HTTP_STATUS,
                context={"status_code": response.status_code},
            )

        content = response.content
        if not content or not content.strip():
            raise FeedFetchError(
                f"Empty response body from {feed_url}",
                feed_url=feed_url,
                error_code=ErrorCode.FEED_EMPTY_RESPONSE,
            )

        self.logger.debug(
            f"Feed fetched in {time.time() - start_time:.2f}s, size: {len(content)} bytes"
        )
        return content

    def close(self) -> None:
        self.session.close()
