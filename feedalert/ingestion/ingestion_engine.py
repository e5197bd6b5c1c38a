"""
Ingestion Engine
================

Turns a parsed feed document into newly stored records.

Processing runs in three phases:

1. filter: blacklist and freshness decisions, one entry at a time in
   document order (an entry repeating a title already accepted from the
   same document is a duplicate)
2. images: image resolution for the accepted entries, bounded concurrency
3. persist: inserts in document order; a failed insert skips only that
   entry

The returned batch keeps insertion order; ``NewItemBatch.sorted_records``
gives the oldest-first view.
"""

import asyncio
from datetime import datetime
from typing import Any, List, Optional, Sequence, Set, Tuple

import aiohttp

from .entry_fields import extract
from .image_resolver import ImageResolver
from ..database.models import FeedItem, NewItemBatch, ReadFlag, StoredFeedRecord, Visibility
from ..storage.feed_item_repository import FeedItemRepository
from ..utils.dates import Clock, db_friendly_date, parse_feed_date, utc_now, whole_days_between
from ..utils.exceptions import DedupLookupError, PersistError
from ..utils.logging import get_logger_for_component


def is_blacklisted(item: FeedItem, blacklist: Sequence[str]) -> bool:
    """True if any term is a case-sensitive substring of body or title."""
    for term in blacklist:
        if item.body is not None and term in item.body:
            return True
        if item.title is not None and term in item.title:
            return True
    return False


class IngestionEngine:
    """Filters, deduplicates and persists the entries of a feed document."""

    def __init__(
        self,
        items: FeedItemRepository,
        image_resolver: ImageResolver,
        error_sink,
        max_concurrent_images: int = 4,
        clock: Clock = utc_now,
    ):
        self.items = items
        self.image_resolver = image_resolver
        self.error_sink = error_sink
        self.max_concurrent_images = max_concurrent_images
        self.clock = clock
        self.logger = get_logger_for_component("ingestion")

    def to_feed_item(self, entry: Any) -> FeedItem:
        raw_date = extract(entry, "pubDate")
        return FeedItem(
            title=extract(entry, "title"),
            body=extract(entry, "description"),
            published_raw=raw_date,
            link=extract(entry, "link"),
            published_at=parse_feed_date(raw_date, self.clock),
        )

    def is_fresh(self, item: FeedItem, expunge_days: int, now: datetime) -> bool:
        """Inside the expunge window and no stored row has the same title.

        A failed title lookup counts as not fresh.
        """
        if whole_days_between(item.published_at, now) > expunge_days:
            self.logger.debug(f"Rejected {item.title!r}: older than {expunge_days} days")
            return False

        try:
            existing = self.items.count_by_title(item.title)
        except DedupLookupError as e:
            self.logger.warning(f"Dedup lookup failed for {item.title!r}: {e}", extra=e.to_dict())
            self.error_sink.report("dedup", e.user_message, e)
            return False

        if existing > 0:
            self.logger.debug(f"Rejected {item.title!r}: already stored")
            return False
        return True

    def select_fresh(
        self, document: Any, expunge_days: int, blacklist: Sequence[str]
    ) -> List[Tuple[Any, FeedItem]]:
        now = self.clock()
        accepted: List[Tuple[Any, FeedItem]] = []
        seen_titles: Set[Optional[str]] = set()

        for entry in document.entries:
            item = self.to_feed_item(entry)

            if is_blacklisted(item, blacklist):
                self.logger.debug(f"Rejected {item.title!r}: blacklisted")
                continue
            if item.title in seen_titles:
                self.logger.debug(f"Rejected {item.title!r}: repeated in document")
                continue
            if not self.is_fresh(item, expunge_days, now):
                continue

            seen_titles.add(item.title)
            accepted.append((entry, item))

        return accepted

    async def resolve_images(
        self, entries: Sequence[Any], session: Optional[aiohttp.ClientSession]
    ) -> List[Optional[bytes]]:
        if session is None or not entries:
            return [None] * len(entries)

        semaphore = asyncio.Semaphore(self.max_concurrent_images)

        async def resolve_with_semaphore(entry: Any) -> Optional[bytes]:
            async with semaphore:
                try:
                    return await self.image_resolver.resolve(entry, session)
                except Exception as e:
                    # an image never costs the item
                    self.logger.warning(f"Image lookup failed unexpectedly: {e}", exc_info=True)
                    return None

        return list(await asyncio.gather(*(resolve_with_semaphore(e) for e in entries)))

    def persist(self, item: FeedItem, image: Optional[bytes], source_id: int) -> Optional[StoredFeedRecord]:
        record = StoredFeedRecord(
            title=item.title,
            published_at=db_friendly_date(item.published_at),
            link=item.link,
            body=item.body,
            image=image,
            source_id=source_id,
            visibility=Visibility.VISIBLE,
            read_flag=ReadFlag.NEW,
        )
        try:
            return self.items.insert(record)
        except PersistError as e:
            self.logger.warning(f"Skipping {item.title!r}: {e}", extra=e.to_dict())
            self.error_sink.report("persist", e.user_message, e)
            return None

    async def ingest(
        self,
        document: Any,
        expunge_days: int,
        source_id: int,
        blacklist: Sequence[str],
        session: Optional[aiohttp.ClientSession] = None,
    ) -> NewItemBatch:
        """Store the fresh entries of ``document`` and return them.

        Args:
            document: Parsed feedparser document
            expunge_days: Entries older than this many whole days are rejected
            source_id: Tag stored on every record
            blacklist: Case-sensitive terms rejecting an entry
            session: Session for image downloads, None skips images

        Returns:
            The inserted records. Iterating the batch yields them in document
            (insertion) order; ``sorted_records``, ``titles()`` and ``latest``
            give the oldest-first date order.
        """
        accepted = self.select_fresh(document, expunge_days, blacklist)
        images = await self.resolve_images([entry for entry, _ in accepted], session)

        batch = NewItemBatch()
        for (_, item), image in zip(accepted, images):
            record = self.persist(item, image, source_id)
            if record is not None:
                batch.append(record)

        self.logger.info(
            f"Ingested {len(batch)} of {len(document.entries)} entries for source {source_id}"
        )
        return batch
