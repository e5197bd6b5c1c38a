"""
FeedAlert Logging Configuration
===============================

Logging for the refresh pipeline. Every component logs through an adapter
carrying ``component`` and, where known, ``feed_url`` and ``source_id``;
the formatters surface that context (and the error code of a reported
FeedAlertError) next to the message.

Console output is colored and compact; log files are always JSON lines.
"""

import json
import logging
import logging.handlers
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

# fields surfaced at the top level of a JSON line
CONTEXT_FIELDS = ("component", "feed_url", "source_id", "error_code", "error_type")

# attributes every LogRecord has; anything else came in through ``extra``
_RECORD_ATTRIBUTES = set(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}

_NOISY_LIBRARIES = {
    "aiohttp": logging.WARNING,
    "feedparser": logging.WARNING,
    "httpx": logging.WARNING,
    "PIL": logging.WARNING,
    "telegram": logging.INFO,
}


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRIBUTES}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, pipeline context promoted to top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra = _extra_fields(record)
        for key in CONTEXT_FIELDS:
            if extra.get(key) is not None:
                entry[key] = extra.pop(key)
        if extra:
            entry["extra"] = extra

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """``[HH:MM:SS] LEVEL component (feed) - message`` with level colors."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        component = getattr(record, "component", None) or record.name
        feed_url = getattr(record, "feed_url", None)
        where = f"{component} ({feed_url})" if feed_url else component

        line = f"{color}[{timestamp}] {record.levelname:8}{self.RESET} {where} - {record.getMessage()}"

        error_code = getattr(record, "error_code", None)
        if error_code:
            line += f" [{error_code}]"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        return line


def setup_logger(
    name: str = "feedalert",
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True,
    structured: bool = False,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """Attach console and/or rotating file handlers to logger ``name``.

    Existing handlers are replaced, so calling this again reconfigures
    rather than duplicates output.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level.upper())
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if console:
        stream = logging.StreamHandler(sys.stdout)
        stream.setFormatter(StructuredFormatter() if structured else ColoredConsoleFormatter())
        logger.addHandler(stream)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            path, maxBytes=max_file_size, backupCount=backup_count, encoding="utf-8"
        )
        rotating.setFormatter(StructuredFormatter())
        logger.addHandler(rotating)

    return logger


class LoggerAdapter(logging.LoggerAdapter):
    """Adapter merging its component context into every record's extra."""

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {**kwargs.get("extra", {}), **self.extra}
        return msg, kwargs


def get_logger_for_component(
    component_name: str,
    feed_url: Optional[str] = None,
    source_id: Optional[int] = None,
) -> LoggerAdapter:
    """Logger for one pipeline component, optionally bound to a feed.

    Args:
        component_name: Component name, e.g. 'feed_fetcher'
        feed_url: Feed the component is working on
        source_id: Configured source tag of that feed
    """
    context: Dict[str, Any] = {"component": component_name}
    if feed_url:
        context["feed_url"] = feed_url
    if source_id is not None:
        context["source_id"] = source_id

    return LoggerAdapter(logging.getLogger(f"feedalert.{component_name}"), context)


def configure_application_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = "logs/feedalert.log",
    enable_console: bool = True,
    structured_logging: bool = False,
    max_file_size_mb: int = 10,
    backup_count: int = 5,
) -> None:
    """Configure the ``feedalert`` logger tree and quiet third-party libraries."""
    setup_logger(
        name="feedalert",
        level=log_level,
        log_file=log_file,
        console=enable_console,
        structured=structured_logging,
        max_file_size=max_file_size_mb * 1024 * 1024,
        backup_count=backup_count,
    )

    for library, level in _NOISY_LIBRARIES.items():
        logging.getLogger(library).setLevel(level)


class PerformanceLogger:
    """Logs how long a pipeline step took.

    Usage:
        with PerformanceLogger(logger, "refresh_cycle", sources=3):
            ...
    """

    def __init__(self, logger, operation: str, **context):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.started: Optional[float] = None
        self.duration: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self.started = time.monotonic()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.duration = time.monotonic() - self.started
        context = {**self.context, "duration_seconds": round(self.duration, 3)}

        if exc_type is None:
            self.logger.info(f"Completed {self.operation} in {self.duration:.3f}s", extra=context)
        else:
            self.logger.error(f"Failed {self.operation} after {self.duration:.3f}s", extra=context)
