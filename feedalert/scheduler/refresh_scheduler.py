"""
FeedAlert Refresh Scheduler
===========================

Refresh cycle orchestration.

A cycle fetches every configured source in order, ingests new entries,
presents the merged batch once, expunges old records and flushes the
error sink. Cycles against the same feed URL never overlap: each URL has
its own lock, and the scheduler service runs cycles back to back under a
process lock.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

import aiohttp

from ..config.settings import FeedAlertSettings, FeedSource
from ..database.connection import DatabaseConnection
from ..database.models import NewItemBatch
from ..delivery.notification_policy import NotificationPolicy, NotificationSurface
from ..ingestion.feed_fetcher import ConditionalFetcher, FetchStatus
from ..ingestion.image_resolver import ImageResolver
from ..ingestion.ingestion_engine import IngestionEngine
from ..recovery.error_sink import LoggingErrorSink, NotifyingErrorSink
from ..storage.feed_item_repository import FeedItemRepository
from ..storage.fetch_state_repository import FetchStateRepository
from ..utils.dates import Clock, utc_now
from ..utils.exceptions import DatabaseError
from ..utils.logging import PerformanceLogger, get_logger_for_component
from ..utils.process_lock import ProcessLock


@dataclass
class SourceOutcome:
    """What happened to one source during a cycle."""

    feed_url: str
    source_id: int
    status: FetchStatus
    new_items: int = 0
    error: Optional[str] = None


@dataclass
class CycleResult:
    """Summary of one refresh cycle."""

    started_at: datetime
    outcomes: List[SourceOutcome] = field(default_factory=list)
    batch: NewItemBatch = field(default_factory=NewItemBatch)
    alerts_shown: int = 0
    expunged: int = 0

    @property
    def new_items(self) -> int:
        return len(self.batch)

    @property
    def errors(self) -> List[SourceOutcome]:
        return [o for o in self.outcomes if o.status == FetchStatus.ERROR]


class RefreshPipeline:
    """Fetch, ingest and present for the configured feed sources."""

    def __init__(
        self,
        settings: FeedAlertSettings,
        items: FeedItemRepository,
        fetcher: ConditionalFetcher,
        engine: IngestionEngine,
        policy: NotificationPolicy,
        error_sink,
        clock: Clock = utc_now,
    ):
        self.settings = settings
        self.items = items
        self.fetcher = fetcher
        self.engine = engine
        self.policy = policy
        self.error_sink = error_sink
        self.clock = clock
        self.blacklist = settings.filtering.blacklist_terms()
        self._locks: Dict[str, asyncio.Lock] = {}
        self.logger = get_logger_for_component("refresh_pipeline")

    def _lock_for(self, feed_url: str) -> asyncio.Lock:
        lock = self._locks.get(feed_url)
        if lock is None:
            lock = self._locks[feed_url] = asyncio.Lock()
        return lock

    async def run_source(
        self, source: FeedSource, session: aiohttp.ClientSession
    ) -> Tuple[SourceOutcome, NewItemBatch]:
        """Refresh one source; serialized per feed URL."""
        feed_url = source.feed_url
        expunge_days = self.settings.feeds.expunge_days_for(source)
        logger = get_logger_for_component("refresh_pipeline", feed_url=feed_url, source_id=source.source_id)

        async with self._lock_for(feed_url):
            try:
                result = await self.fetcher.fetch(feed_url, expunge_days, session)
            except DatabaseError as e:
                logger.error(f"Fetch state unavailable: {e}", extra=e.to_dict())
                self.error_sink.report(feed_url, e.user_message, e)
                return SourceOutcome(feed_url, source.source_id, FetchStatus.ERROR, error=str(e)), NewItemBatch()

            if result.status == FetchStatus.NOT_MODIFIED:
                return SourceOutcome(feed_url, source.source_id, result.status), NewItemBatch()

            if result.status == FetchStatus.ERROR:
                return SourceOutcome(
                    feed_url, source.source_id, result.status, error=str(result.error)
                ), NewItemBatch()

            batch = await self.engine.ingest(
                result.document, expunge_days, source.source_id, self.blacklist, session
            )

        logger.info(f"Source refreshed: {len(batch)} new item(s)")
        return SourceOutcome(feed_url, source.source_id, result.status, new_items=len(batch)), batch

    async def run_cycle(
        self,
        sources: Optional[Sequence[FeedSource]] = None,
        session: Optional[aiohttp.ClientSession] = None,
        expunge: bool = True,
    ) -> CycleResult:
        """Run one refresh cycle over ``sources`` (default: all configured)."""
        sources = list(self.settings.feeds.sources if sources is None else sources)
        cycle = CycleResult(started_at=self.clock())
        self.logger.info(f"Starting refresh cycle for {len(sources)} source(s)")

        with PerformanceLogger(self.logger, "fetch_and_ingest", sources=len(sources)):
            if session is None:
                async with self.fetcher.get_session() as own_session:
                    await self._refresh_sources(sources, own_session, cycle)
            else:
                await self._refresh_sources(sources, session, cycle)

        cycle.alerts_shown = await self.policy.present(cycle.batch)

        if expunge and sources:
            window = max(self.settings.feeds.expunge_days_for(s) for s in sources)
            try:
                cycle.expunged = self.items.delete_older_than(window)
            except DatabaseError as e:
                self.error_sink.report("expunge", e.user_message, e)

        await self.error_sink.flush()

        self.logger.info(
            f"Refresh cycle complete: {cycle.new_items} new, {len(cycle.errors)} error(s), "
            f"{cycle.expunged} expunged"
        )
        return cycle

    async def _refresh_sources(
        self, sources: Sequence[FeedSource], session: aiohttp.ClientSession, cycle: CycleResult
    ) -> None:
        for source in sources:
            outcome, batch = await self.run_source(source, session)
            cycle.outcomes.append(outcome)
            cycle.batch = cycle.batch.merge(batch)


def build_pipeline(
    settings: FeedAlertSettings,
    db: DatabaseConnection,
    surface: NotificationSurface,
    notify_errors: bool = True,
    clock: Clock = utc_now,
) -> RefreshPipeline:
    """Wire a RefreshPipeline from settings."""
    items = FeedItemRepository(db, clock=clock)
    fetch_state = FetchStateRepository(db)
    policy = NotificationPolicy.from_settings(surface, settings)
    error_sink = NotifyingErrorSink(policy, clock=clock) if notify_errors else LoggingErrorSink(clock)

    fetcher = ConditionalFetcher(
        fetch_state, error_sink, timeout=settings.limits.request_timeout, clock=clock
    )
    engine = IngestionEngine(
        items,
        ImageResolver.from_settings(settings),
        error_sink,
        max_concurrent_images=settings.images.max_concurrent,
        clock=clock,
    )
    return RefreshPipeline(settings, items, fetcher, engine, policy, error_sink, clock=clock)


class RefreshScheduler:
    """Runs refresh cycles at a fixed interval, one at a time."""

    def __init__(self, pipeline: RefreshPipeline, interval_minutes: int, lock: Optional[ProcessLock] = None):
        self.pipeline = pipeline
        self.interval_seconds = interval_minutes * 60
        self.lock = lock
        self._stopping = asyncio.Event()
        self.cycles_run = 0
        self.logger = get_logger_for_component("scheduler")

    def stop(self) -> None:
        self._stopping.set()

    async def run_forever(self, max_cycles: Optional[int] = None) -> None:
        """Run cycles until stopped or ``max_cycles`` is reached.

        Raises:
            RuntimeError: If another scheduler holds the process lock
        """
        if self.lock is not None and not self.lock.acquire():
            raise RuntimeError("Another refresh scheduler is already running")

        self.logger.info(f"Refresh scheduler started (every {self.interval_seconds // 60} min)")
        try:
            while not self._stopping.is_set():
                try:
                    await self.pipeline.run_cycle()
                except Exception as e:
                    self.logger.error(f"Refresh cycle failed: {e}", exc_info=True)

                self.cycles_run += 1
                if max_cycles is not None and self.cycles_run >= max_cycles:
                    break

                try:
                    await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
                except asyncio.TimeoutError:
                    pass
        finally:
            if self.lock is not None:
                self.lock.release()
            self.logger.info("Refresh scheduler stopped")
