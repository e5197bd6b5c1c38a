"""
FeedAlert Ingestion Module
==========================

Feed fetching and ingestion components.

This module handles:
- Conditional feed fetching and parsing
- Blacklist filtering and freshness/dedup decisions
- Image discovery and rescaling
- Markup stripping for display
"""

from .content_cleaner import ContentCleaner, remove_html
from .entry_fields import extract
from .feed_fetcher import ConditionalFetcher, FetchResult, FetchStatus
from .image_resolver import ImageResolver
from .ingestion_engine import IngestionEngine

__all__ = [
    "ContentCleaner",
    "remove_html",
    "extract",
    "ConditionalFetcher",
    "FetchResult",
    "FetchStatus",
    "ImageResolver",
    "IngestionEngine",
]
