"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for FeedAlert tests.

- File-backed temporary databases (one per test)
- A fixed clock so age and date assertions are stable
- An in-process stand-in for the aiohttp session
- RSS document and image builders
"""

import io
import os
import sys
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
from xml.sax.saxutils import escape

import pytest

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
os.environ["FEEDALERT_DEBUG"] = "true"
os.environ["FEEDALERT_LOGGING__CONSOLE_LOGGING"] = "false"

NOW = datetime(2024, 5, 15, 12, 0, 0, tzinfo=timezone.utc)
FEED_URL = "https://news.example.com/rss.xml"


# ============================================================================
# Clock and Database Fixtures
# ============================================================================


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    """Clock frozen at NOW."""
    return lambda: NOW


@pytest.fixture
def db_path(tmp_path):
    """Path of a fresh database with the schema created."""
    from feedalert.database.schema import DatabaseSchema

    path = tmp_path / "feedalert_test.db"
    DatabaseSchema(str(path)).create_tables()
    return str(path)


@pytest.fixture
def db_connection(db_path):
    """Create a database connection manager for testing."""
    from feedalert.database.connection import DatabaseConnection

    connection = DatabaseConnection(db_path, pool_size=2)
    yield connection

    connection.close_all_connections()


@pytest.fixture
def item_repo(db_connection, clock):
    from feedalert.storage.feed_item_repository import FeedItemRepository

    return FeedItemRepository(db_connection, clock=clock)


@pytest.fixture
def fetch_state_repo(db_connection):
    from feedalert.storage.fetch_state_repository import FetchStateRepository

    return FetchStateRepository(db_connection)


@pytest.fixture
def make_record():
    """Build StoredFeedRecord instances with sensible defaults."""
    from feedalert.database.models import StoredFeedRecord

    def build(title="Item", published_at="2024-05-14 08:00:00", **kwargs):
        kwargs.setdefault("link", "https://news.example.com/item")
        kwargs.setdefault("body", f"<p>{title} body</p>")
        kwargs.setdefault("source_id", 1)
        return StoredFeedRecord(title=title, published_at=published_at, **kwargs)

    return build


# ============================================================================
# HTTP Fixtures
# ============================================================================


class FakeResponse:
    """Minimal aiohttp response used as an async context manager."""

    def __init__(self, status: int = 200, body: bytes = b"", reason: str = "OK"):
        self.status = status
        self.reason = reason
        self._body = body
        self.released = False
        self.read_called = False

    async def read(self) -> bytes:
        self.read_called = True
        return self._body

    def release(self) -> None:
        self.released = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.released = True
        return False


class FakeSession:
    """Stand-in for aiohttp.ClientSession keyed by URL.

    A route is either a FakeResponse or an exception raised by ``get``.
    """

    def __init__(self):
        self.routes: Dict[str, Any] = {}
        self.requests: List[Dict[str, Any]] = []

    def add(self, url: str, status: int = 200, body: bytes = b"", reason: str = "OK") -> FakeResponse:
        response = FakeResponse(status, body, reason)
        self.routes[url] = response
        return response

    def fail(self, url: str, error: Exception) -> None:
        self.routes[url] = error

    def get(self, url: str, headers: Optional[Dict[str, str]] = None, timeout: Any = None):
        self.requests.append({"url": url, "headers": dict(headers or {})})
        route = self.routes.get(url)
        if route is None:
            return FakeResponse(404, b"", "Not Found")
        if isinstance(route, Exception):
            raise route
        return route

    def requested(self, url: str) -> List[Dict[str, Any]]:
        return [r for r in self.requests if r["url"] == url]


@pytest.fixture
def http_session():
    return FakeSession()


# ============================================================================
# Feed and Image Builders
# ============================================================================


def rss_date(value: datetime) -> str:
    return format_datetime(value)


def build_rss(items: List[Dict[str, Any]], title: str = "Example News") -> bytes:
    """RSS 2.0 document; each item dict may carry title, description,
    pubDate (datetime or raw str), link, content, thumbnail, enclosure."""
    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<rss version="2.0" xmlns:content="http://purl.org/rss/1.0/modules/content/" '
        'xmlns:media="http://search.yahoo.com/mrss/">',
        "<channel>",
        f"<title>{escape(title)}</title>",
        "<link>https://news.example.com/</link>",
        "<description>Test feed</description>",
    ]
    for item in items:
        parts.append("<item>")
        if "title" in item:
            parts.append(f"<title>{escape(item['title'])}</title>")
        if "description" in item:
            parts.append(f"<description><![CDATA[{item['description']}]]></description>")
        if "pubDate" in item:
            value = item["pubDate"]
            raw = rss_date(value) if isinstance(value, datetime) else value
            parts.append(f"<pubDate>{raw}</pubDate>")
        if "link" in item:
            parts.append(f"<link>{escape(item['link'])}</link>")
        if "content" in item:
            parts.append(f"<content:encoded><![CDATA[{item['content']}]]></content:encoded>")
        if "thumbnail" in item:
            parts.append(f'<media:thumbnail url="{escape(item["thumbnail"])}" />')
        if "enclosure" in item:
            parts.append(f'<enclosure url="{escape(item["enclosure"])}" type="image/jpeg" length="1000" />')
        parts.append("</item>")
    parts += ["</channel>", "</rss>"]
    return "\n".join(parts).encode("utf-8")


@pytest.fixture
def make_rss():
    return build_rss


@pytest.fixture
def parse_rss():
    """Build an RSS document and parse it with feedparser."""
    import feedparser

    def parse(items: List[Dict[str, Any]]):
        return feedparser.parse(build_rss(items))

    return parse


@pytest.fixture
def days_ago():
    return lambda days, hours=0: NOW - timedelta(days=days, hours=hours)


@pytest.fixture
def make_image():
    """JPEG bytes of a solid image of the given size."""
    from PIL import Image

    def build(width: int = 400, height: int = 200, fmt: str = "JPEG") -> bytes:
        output = io.BytesIO()
        Image.new("RGB", (width, height), (200, 40, 40)).save(output, format=fmt)
        return output.getvalue()

    return build


# ============================================================================
# Notification Fixtures
# ============================================================================


class RecordingSurface:
    """NotificationSurface keeping every shown alert."""

    def __init__(self):
        self.alerts: List[Dict[str, Any]] = []

    async def show(self, key, title, body, actions, sound=None, blink=None, image=None,
                   high_priority=False):
        self.alerts.append({
            "key": key,
            "title": title,
            "body": body,
            "actions": list(actions),
            "sound": sound,
            "blink": blink,
            "image": image,
            "high_priority": high_priority,
        })

    @property
    def keys(self):
        return [alert["key"] for alert in self.alerts]


@pytest.fixture
def surface():
    return RecordingSurface()


@pytest.fixture
def error_sink(clock):
    from feedalert.recovery.error_sink import LoggingErrorSink

    return LoggingErrorSink(clock)


@pytest.fixture
def settings_factory(tmp_path):
    """FeedAlertSettings for tests, isolated from the real environment."""
    from feedalert.config.settings import (
        DatabaseSettings,
        FeedAlertSettings,
        FeedSettings,
        FeedSource,
        FilteringSettings,
        LoggingSettings,
    )

    def build(sources=None, blacklist="", default_expunge_days=5, **kwargs):
        if sources is None:
            sources = [FeedSource(url=FEED_URL, source_id=1)]
        return FeedAlertSettings(
            feeds=FeedSettings(sources=sources, default_expunge_days=default_expunge_days),
            filtering=FilteringSettings(blacklist=blacklist, continue_marker="CONTINUE_READING"),
            database=DatabaseSettings(path=str(tmp_path / "feedalert.db")),
            logging=LoggingSettings(file_path=None, console_logging=False),
            **kwargs,
        )

    return build
