"""
FeedAlert Custom Exceptions
===========================

Exception hierarchy for the feed ingestion pipeline with error codes,
context information, and user-friendly error messages.

Only document-level failures (NetworkError, FeedParseError) abort a
refresh cycle for a source. All per-item errors are recovered locally.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration errors (C001-C099)
    CONFIG_INVALID = "C001"
    CONFIG_MISSING = "C002"

    # Database errors (D001-D099)
    DATABASE_CONNECTION = "D001"
    DATABASE_SCHEMA = "D002"
    DATABASE_ERROR = "D003"
    DEDUP_LOOKUP_FAILED = "D004"
    PERSIST_FAILED = "D005"

    # Feed errors (F001-F099)
    FEED_INVALID_URL = "F001"
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"
    FEED_BAD_STATUS = "F005"

    # Item processing errors (P001-P099)
    DATE_PARSE_FAILED = "P001"
    IMAGE_RESOLUTION_FAILED = "P002"

    # Notification errors (N001-N099)
    NOTIFICATION_FAILED = "N001"


class FeedAlertError(Exception):
    """Base exception for all FeedAlert errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: bool = False,
    ):
        """Initialize FeedAlert error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code
            context: Additional context information
            user_message: User-friendly error message
            recoverable: Whether the error is recoverable
        """
        super().__init__(message)
        self.error_code = error_code
        self.context = context or {}
        self.user_message = user_message or message
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "user_message": self.user_message,
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        """String representation with error code."""
        if self.error_code:
            return f"[{self.error_code.value}] {super().__str__()}"
        return super().__str__()


def _split_kwargs(kwargs: Dict[str, Any], *consumed: str) -> Dict[str, Any]:
    return {k: v for k, v in kwargs.items() if k not in consumed}


class ConfigurationError(FeedAlertError):
    """Configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if config_key:
            context["config_key"] = config_key

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.CONFIG_INVALID),
            context=context,
            user_message=kwargs.get("user_message", f"Configuration error: {message}"),
            **_split_kwargs(kwargs, "context", "error_code", "user_message"),
        )


class DatabaseError(FeedAlertError):
    """Database-related errors."""

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        """Initialize database error.

        Args:
            message: Error message
            query: SQL query that caused the error
            **kwargs: Additional arguments for FeedAlertError
        """
        context = kwargs.get("context", {})
        if query:
            context["query"] = query

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.DATABASE_ERROR),
            context=context,
            user_message=kwargs.get("user_message", "Database operation failed"),
            recoverable=kwargs.get("recoverable", True),
            **_split_kwargs(kwargs, "context", "error_code", "user_message", "recoverable"),
        )


class DedupLookupError(DatabaseError):
    """Duplicate lookup failed; the item is treated as not fresh."""

    def __init__(self, message: str, title: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if title is not None:
            context["title"] = title
        kwargs.setdefault("error_code", ErrorCode.DEDUP_LOOKUP_FAILED)
        super().__init__(message, context=context, **kwargs)


class PersistError(DatabaseError):
    """Inserting a single record failed; the item is skipped."""

    def __init__(self, message: str, title: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if title is not None:
            context["title"] = title
        kwargs.setdefault("error_code", ErrorCode.PERSIST_FAILED)
        super().__init__(message, context=context, **kwargs)


class FeedError(FeedAlertError):
    """Feed fetching and parsing errors."""

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        """Initialize feed error.

        Args:
            message: Error message
            feed_url: Feed URL that caused the error
            **kwargs: Additional arguments for FeedAlertError
        """
        context = kwargs.get("context", {})
        if feed_url:
            context["feed_url"] = feed_url

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.FEED_NETWORK_ERROR),
            context=context,
            user_message=kwargs.get("user_message", f"Feed refresh failed: {message}"),
            recoverable=kwargs.get("recoverable", True),
            **_split_kwargs(kwargs, "context", "error_code", "user_message", "recoverable"),
        )


class NetworkError(FeedError):
    """Timeout, refused connection, malformed URL or unexpected status."""

    pass


class FeedParseError(FeedError):
    """The fetched body is not a usable feed document."""

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        kwargs.setdefault("error_code", ErrorCode.FEED_PARSE_ERROR)
        super().__init__(message, feed_url=feed_url, **kwargs)


class ProcessingError(FeedAlertError):
    """Per-item processing errors."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            error_code=kwargs.get("error_code"),
            context=kwargs.get("context", {}),
            user_message=kwargs.get("user_message", "Item processing failed"),
            recoverable=kwargs.get("recoverable", True),
        )


class DateParseError(ProcessingError):
    """A raw publish date did not match the feed date pattern."""

    def __init__(self, message: str, raw_value: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        context["raw_value"] = raw_value
        kwargs.setdefault("error_code", ErrorCode.DATE_PARSE_FAILED)
        super().__init__(message, context=context, **kwargs)


class ImageResolutionError(ProcessingError):
    """An image candidate could not be fetched or decoded."""

    def __init__(self, message: str, image_url: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if image_url:
            context["image_url"] = image_url
        kwargs.setdefault("error_code", ErrorCode.IMAGE_RESOLUTION_FAILED)
        super().__init__(message, context=context, **kwargs)


class NotificationError(FeedAlertError):
    """A notification surface rejected an alert."""

    def __init__(self, message: str, key: Optional[int] = None, **kwargs):
        context = kwargs.get("context", {})
        if key is not None:
            context["key"] = key

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.NOTIFICATION_FAILED),
            context=context,
            user_message=kwargs.get("user_message", "Notification delivery failed"),
            recoverable=kwargs.get("recoverable", True),
        )


def get_user_friendly_message(exception: Exception) -> str:
    """Get user-friendly error message for any exception."""
    if isinstance(exception, FeedAlertError):
        return exception.user_message

    return "An unexpected error occurred. Please try again later."
