"""
FeedAlert - Feed Ingestion and Alerting
=======================================

Periodically pulls RSS/Atom feeds, stores the genuinely new items and
raises alerts for them without re-alerting on content already seen.

Main Components:
- Database: SQLite with connection pooling and schema management
- Configuration: environment variables and .env with Pydantic validation
- Ingestion: conditional fetching, blacklist, freshness and dedup, images
- Delivery: notification policy with Telegram and console surfaces
- Scheduler: single-flight refresh cycles at a fixed interval
"""

__version__ = "1.0.0"
__author__ = "FeedAlert Development Team"
__description__ = "Feed ingestion and dedup pipeline with alerting"

from .config.settings import get_settings
from .database.connection import get_db_manager
from .database.schema import DatabaseSchema
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import FeedAlertError

__all__ = [
    "get_settings",
    "get_db_manager",
    "DatabaseSchema",
    "configure_application_logging",
    "get_logger_for_component",
    "FeedAlertError",
]
