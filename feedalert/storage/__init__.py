"""
FeedAlert Storage Module
========================

Repositories over the SQLite store.
"""

from .feed_item_repository import FeedItemRepository
from .fetch_state_repository import FetchStateRepository

__all__ = [
    "FeedItemRepository",
    "FetchStateRepository",
]
