"""
Conditional Feed Fetcher
========================

Conditional GET of a feed document with If-Modified-Since, feedparser
parsing and per-URL fetch state bookkeeping.
"""

import asyncio
import ssl
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional
from urllib.parse import urlparse

import aiohttp
import certifi
import feedparser

from ..storage.fetch_state_repository import FetchStateRepository
from ..utils.dates import Clock, http_date, utc_now
from ..utils.exceptions import ErrorCode, FeedError, FeedParseError, NetworkError
from ..utils.logging import get_logger_for_component

FEED_HEADERS = {
    "User-Agent": "FeedAlert/1.0",
    "Accept": "application/rss+xml, application/atom+xml, application/xml, text/xml, */*",
    "Accept-Encoding": "gzip, deflate",
}


class FetchStatus(str, Enum):
    NOT_MODIFIED = "not_modified"
    DOCUMENT = "document"
    ERROR = "error"


@dataclass
class FetchResult:
    """Result of a conditional fetch."""

    feed_url: str
    status: FetchStatus
    document: Optional[Any] = None
    error: Optional[FeedError] = None
    fetched_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return self.status != FetchStatus.ERROR


class ConditionalFetcher:
    """Fetches feed documents only when they changed since the last fetch."""

    def __init__(
        self,
        fetch_state: FetchStateRepository,
        error_sink,
        timeout: int = 30,
        clock: Clock = utc_now,
    ):
        """Initialize conditional fetcher.

        Args:
            fetch_state: Repository holding the last fetch per URL
            error_sink: Receives every fetch failure
            timeout: Request timeout in seconds
            clock: Source of the current time
        """
        self.fetch_state = fetch_state
        self.error_sink = error_sink
        self.timeout = timeout
        self.clock = clock
        self.logger = get_logger_for_component("feed_fetcher")

        self.ssl_context = ssl.create_default_context(cafile=certifi.where())

    @asynccontextmanager
    async def get_session(self):
        """Get configured aiohttp session for one refresh cycle."""
        connector = aiohttp.TCPConnector(
            ssl=self.ssl_context,
            limit=10,
            limit_per_host=4,
            enable_cleanup_closed=True,
        )
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        async with aiohttp.ClientSession(
            connector=connector, timeout=timeout, headers=FEED_HEADERS
        ) as session:
            yield session

    def if_modified_since(self, feed_url: str, expunge_days: int, now: datetime) -> datetime:
        """Later of the expunge window start and the stored last fetch."""
        since = now - timedelta(days=expunge_days)
        last_fetch = self.fetch_state.get_last_fetch(feed_url)
        if last_fetch is not None and last_fetch > since:
            since = last_fetch
        return since

    async def fetch(
        self, feed_url: str, expunge_days: int, session: aiohttp.ClientSession
    ) -> FetchResult:
        """Conditionally fetch and parse ``feed_url``.

        Returns:
            NOT_MODIFIED on 304, DOCUMENT with the parsed feed on 200, ERROR
            otherwise. Only DOCUMENT updates the stored fetch timestamp.
        """
        now = self.clock()

        try:
            self._validate_url(feed_url)
            since = self.if_modified_since(feed_url, expunge_days, now)
            content = await self._get(feed_url, since, session)
            if content is None:
                self.logger.info(f"Feed not modified: {feed_url}")
                return FetchResult(feed_url, FetchStatus.NOT_MODIFIED, fetched_at=now)

            document = self._parse(feed_url, content)

        except FeedError as e:
            self.logger.error(f"Feed fetch failed for {feed_url}: {e}", extra=e.to_dict())
            self.error_sink.report(feed_url, e.user_message, e)
            return FetchResult(feed_url, FetchStatus.ERROR, error=e, fetched_at=now)

        self.fetch_state.set_last_fetch(feed_url, now)
        self.logger.info(f"Fetched {len(document.entries)} entries from {feed_url}")
        return FetchResult(feed_url, FetchStatus.DOCUMENT, document=document, fetched_at=now)

    def _validate_url(self, feed_url: str) -> None:
        try:
            parsed = urlparse(feed_url)
            valid = parsed.scheme in ("http", "https") and bool(parsed.hostname)
        except ValueError:
            valid = False

        if not valid:
            raise NetworkError(
                f"Malformed feed URL: {feed_url!r}",
                feed_url=feed_url,
                error_code=ErrorCode.FEED_INVALID_URL,
                user_message=f"Malformed URL: {feed_url}",
            )

    async def _get(
        self, feed_url: str, since: datetime, session: aiohttp.ClientSession
    ) -> Optional[bytes]:
        """GET with If-Modified-Since; None means 304."""
        headers = {"If-Modified-Since": http_date(since)}
        self.logger.debug(f"Fetching {feed_url} (If-Modified-Since: {headers['If-Modified-Since']})")

        try:
            async with session.get(feed_url, headers=headers) as response:
                if response.status == 304:
                    response.release()
                    return None

                if response.status != 200:
                    response.release()
                    raise NetworkError(
                        f"HTTP {response.status}: {response.reason}",
                        feed_url=feed_url,
                        error_code=ErrorCode.FEED_BAD_STATUS,
                        user_message=f"Strange response code {response.status} from {feed_url}",
                    )

                return await response.read()

        except asyncio.TimeoutError as e:
            raise NetworkError(
                f"Request timeout after {self.timeout}s",
                feed_url=feed_url,
                error_code=ErrorCode.FEED_FETCH_TIMEOUT,
                user_message=f"Timeout while fetching {feed_url}",
            ) from e
        except aiohttp.InvalidURL as e:
            raise NetworkError(
                f"Malformed feed URL: {e}",
                feed_url=feed_url,
                error_code=ErrorCode.FEED_INVALID_URL,
                user_message=f"Malformed URL: {feed_url}",
            ) from e
        except aiohttp.ClientError as e:
            raise NetworkError(
                f"Connection error: {e}",
                feed_url=feed_url,
                user_message=f"Connection failed: {feed_url}",
            ) from e

    def _parse(self, feed_url: str, content: bytes) -> Any:
        document = feedparser.parse(content)

        if document.bozo and not document.entries:
            reason = getattr(document, "bozo_exception", "invalid XML structure")
            raise FeedParseError(f"Feed parse error: {reason}", feed_url=feed_url)

        if document.bozo:
            self.logger.info(f"Feed has parse warnings but contains entries: {feed_url}")

        return document
