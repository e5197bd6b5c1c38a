"""
Feed date helpers.

Three representations are in play: the raw ``pubDate`` text found in a
feed (RFC 822 style, ``Mon, 2 Jan 2006 15:04:05 -0700``), the canonical
stored form ``yyyy-MM-dd HH:mm:ss`` (UTC, fixed width so string order is
chronological order), and the HTTP date used in ``If-Modified-Since``.
"""

from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import Callable, Optional

from .exceptions import DateParseError
from .logging import get_logger_for_component

DATABASE_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

Clock = Callable[[], datetime]

logger = get_logger_for_component("dates")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_feed_date_strict(raw: Optional[str]) -> datetime:
    """Parse a raw feed date, raising DateParseError when it does not match."""
    if raw is None:
        raise DateParseError("Feed date is missing", raw_value=None)
    try:
        parsed = parsedate_to_datetime(raw.strip())
    except (TypeError, ValueError, IndexError) as e:
        raise DateParseError(f"Feed date does not match pattern: {raw!r}", raw_value=raw) from e
    if parsed is None:
        raise DateParseError(f"Feed date does not match pattern: {raw!r}", raw_value=raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_feed_date(raw: Optional[str], clock: Clock = utc_now) -> datetime:
    """Parse a raw feed date; anything unparsable becomes the current time.

    An item is never dropped because of its date, so failures are only
    recorded as diagnostics.
    """
    try:
        return parse_feed_date_strict(raw)
    except DateParseError as e:
        logger.debug(f"{e}; using current time", extra=e.to_dict())
        return clock()


def db_friendly_date(value: datetime) -> str:
    """Format a timestamp in the canonical stored form (UTC)."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(DATABASE_DATETIME_FORMAT)


def from_db_date(value: str) -> datetime:
    return datetime.strptime(value, DATABASE_DATETIME_FORMAT).replace(tzinfo=timezone.utc)


def http_date(value: datetime) -> str:
    """RFC 1123 date in GMT, e.g. ``Mon, 02 Jan 2006 22:04:05 GMT``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


def whole_days_between(earlier: datetime, later: datetime) -> int:
    """Whole days elapsed from ``earlier`` to ``later``, truncated toward zero."""
    seconds = (later - earlier).total_seconds()
    return int(seconds / 86400)
