"""
Feed Import Pipeline
====================

Orchestrates one import run: fetch the feed, parse it, then normalize,
gate and ingest every item.

A failed fetch or parse aborts the run and moves the schedule to the retry
backoff. Items are independent: an item that fails is counted and logged,
and its siblings are still processed.
"""

import asyncio
import time
from typing import Optional

from ..config.settings import ImporterSettings, get_settings
from ..database.connection import DatabaseConnection
from ..database.models import (
    RawFeedItem,
    IngestionConfig,
    PersistedContentItem,
    ImportRunResult,
)
from ..ingestion.feed_fetcher import FeedFetcher
from ..ingestion.feed_parser import FeedParser
from ..ingestion.item_normalizer import ItemNormalizer
from ..storage.content_repository import ContentStore, ContentRepository
from ..storage.options_repository import OptionsRepository
from ..storage.schedule_repository import ScheduleRepository
from ..scheduler.import_scheduler import ImportScheduler
from ..utils.logging import get_logger_for_component, PerformanceLogger
from ..utils.exceptions import FeedError, DatabaseError, IngestionError
from ..utils.process_lock import RunLock
from .insertion_gate import InsertionGate
from .content_ingestor import ContentIngestor, TagProvider


def build_scheduler(db_connection: DatabaseConnection, settings: ImporterSettings) -> ImportScheduler:
    """Scheduler for the import job configured from settings."""
    return ImportScheduler(
        ScheduleRepository(db_connection),
        job_name=settings.schedule.job_name,
        interval_seconds=settings.schedule.default_interval_hours * 3600,
        retry_backoff_minutes=settings.schedule.retry_backoff_minutes,
    )


class FeedImportPipeline:
    """Complete feed import run orchestrator."""

    def __init__(
        self,
        db_connection: DatabaseConnection,
        settings: Optional[ImporterSettings] = None,
        scheduler: Optional[ImportScheduler] = None,
        fetcher: Optional[FeedFetcher] = None,
        store: Optional[ContentStore] = None,
        tag_provider: Optional[TagProvider] = None,
        run_lock: Optional[RunLock] = None,
    ):
        """Initialize import pipeline.

        Args:
            db_connection: Database connection manager
            settings: Application settings (default: global settings)
            scheduler: Scheduler to report failures to
            fetcher: Feed fetcher (default: built from settings)
            store: Content store (default: SQLite content repository)
            tag_provider: Optional hook extending the default tag set
            run_lock: Lock allowing a single run at a time
        """
        self.db = db_connection
        self.settings = settings or get_settings()
        self.logger = get_logger_for_component("pipeline")

        self.feed_url = self.settings.feed.url
        self.max_workers = self.settings.limits.max_workers

        self.scheduler = scheduler or build_scheduler(db_connection, self.settings)
        self.fetcher = fetcher or FeedFetcher(settings=self.settings)
        self.parser = FeedParser(self.feed_url)
        self.normalizer = ItemNormalizer()
        self.options = OptionsRepository(db_connection)

        self.store = store or ContentRepository(db_connection)
        self.gate = InsertionGate(self.store)
        self.ingestor = ContentIngestor(self.store, tag_provider=tag_provider)

        self.run_lock = run_lock or RunLock(
            self.settings.schedule.job_name,
            lock_dir=self.settings.schedule.lock_dir,
        )

    async def run(self) -> ImportRunResult:
        """Execute one import run.

        Returns:
            ImportRunResult with run statistics. A run dropped because another
            run holds the lock has ``skipped_locked`` set.
        """
        result = ImportRunResult()

        if not self.run_lock.acquire():
            self.logger.info("Import already in progress, dropping this trigger")
            result.skipped_locked = True
            return result

        start_time = time.time()
        try:
            await self._run(result)
        finally:
            self.run_lock.release()
            result.duration_seconds = time.time() - start_time

        self._log_run_result(result)
        return result

    async def _run(self, result: ImportRunResult) -> None:
        try:
            config = self.options.load_ingestion_config(self.settings)
            self.scheduler.set_interval(config.interval_seconds)

            with PerformanceLogger(self.logger, "feed fetch", feed_url=self.feed_url):
                content = await asyncio.to_thread(self.fetcher.fetch, self.feed_url)

            items = self.parser.parse(content)

        except (FeedError, DatabaseError) as e:
            self.logger.error(f"Import run aborted: {e}", extra=e.to_dict())
            result.errors.append(str(e))
            state = self.scheduler.handle_failure()
            result.rescheduled_at = state.next_run_at
            return

        result.items_seen = len(items)
        if not items:
            self.logger.info("Feed contains no items")
            result.success = True
            return

        semaphore = asyncio.Semaphore(self.max_workers)
        outcomes = await asyncio.gather(
            *(self._process_with_limit(semaphore, item, config) for item in items),
            return_exceptions=True,
        )

        for item, outcome in zip(items, outcomes):
            if isinstance(outcome, BaseException):
                result.items_failed += 1
                result.errors.append(f"{item.title[:50] or item.guid}: {outcome}")
                if isinstance(outcome, IngestionError):
                    self.logger.error(f"Item import failed: {outcome}", extra=outcome.to_dict())
                else:
                    self.logger.error(
                        f"Unexpected error importing item '{item.title[:50]}': {outcome}",
                        exc_info=outcome,
                    )
            elif outcome is None:
                result.items_rejected += 1
            else:
                result.items_inserted += 1
                result.inserted_ids.append(outcome.id)

        result.success = True

    async def _process_with_limit(
        self,
        semaphore: asyncio.Semaphore,
        item: RawFeedItem,
        config: IngestionConfig,
    ) -> Optional[PersistedContentItem]:
        async with semaphore:
            return await asyncio.to_thread(self.process_item, item, config)

    def process_item(self, item: RawFeedItem, config: IngestionConfig) -> Optional[PersistedContentItem]:
        """Normalize, gate and ingest one item.

        Returns:
            The persisted item, or None if it was rejected

        Raises:
            InsertError: If the content item could not be created
        """
        record = self.normalizer.normalize(item, config)

        if not self.gate.should_insert(record):
            return None

        return self.ingestor.ingest(record, item, config)

    def _log_run_result(self, result: ImportRunResult) -> None:
        self.logger.info(
            f"Import run finished: {result.items_inserted} inserted, "
            f"{result.items_rejected} rejected, {result.items_failed} failed "
            f"of {result.items_seen} items in {result.duration_seconds:.2f}s",
            extra={
                "success": result.success,
                "items_seen": result.items_seen,
                "items_inserted": result.items_inserted,
                "items_rejected": result.items_rejected,
                "items_failed": result.items_failed,
                "duration_seconds": result.duration_seconds,
                "rescheduled_at": result.rescheduled_at,
            },
        )

        if result.errors:
            for error in result.errors[:5]:
                self.logger.warning(f"Run error: {error}")


def run_import(
    db_connection: DatabaseConnection,
    settings: Optional[ImporterSettings] = None,
    tag_provider: Optional[TagProvider] = None,
) -> ImportRunResult:
    """Run a single import synchronously."""
    pipeline = FeedImportPipeline(db_connection, settings=settings, tag_provider=tag_provider)
    return asyncio.run(pipeline.run())
