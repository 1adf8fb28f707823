"""
Unit Tests for Feed Import Pipeline
===================================

Tests for run orchestration: failure backoff, item isolation, run locking
and statistics.
"""

import asyncio
import threading
from datetime import timedelta
from unittest.mock import patch

import pytest

from csl_importer.processing.pipeline import FeedImportPipeline, run_import
from csl_importer.database.models import ImportRunResult
from csl_importer.utils.exceptions import FeedFetchError, InsertError
from csl_importer.utils.process_lock import RunLock

from conftest import SAMPLE_RSS_FEED, EMPTY_CHANNEL_FEED, FakeFetcher, make_feed


class TestPipelineRun:
    """Test cases for FeedImportPipeline.run."""

    async def test_imports_all_new_items(self, make_pipeline, content_repository):
        result = await make_pipeline().run()

        assert isinstance(result, ImportRunResult)
        assert result.success is True
        assert result.items_seen == 2
        assert result.items_inserted == 2
        assert result.items_rejected == 0
        assert result.items_failed == 0
        assert len(result.inserted_ids) == 2
        assert result.insertion_rate == 100.0
        assert content_repository.count_content_items() == 2

    async def test_fetches_configured_url(self, make_pipeline, test_settings):
        fetcher = FakeFetcher()
        await make_pipeline(fetcher=fetcher).run()
        assert fetcher.calls == [test_settings.feed.url]

    async def test_fetch_failure_reschedules_backoff(self, make_pipeline, scheduler, clock):
        scheduler.schedule_next()
        pipeline = make_pipeline(error=FeedFetchError("connection refused"))

        result = await pipeline.run()

        assert result.success is False
        assert result.items_seen == 0
        assert result.rescheduled_at == clock() + timedelta(minutes=20)
        assert scheduler.get_state().next_run_at == clock() + timedelta(minutes=20)
        assert "connection refused" in result.errors[0]

    async def test_parse_failure_reschedules_backoff(self, make_pipeline, scheduler, clock, content_repository):
        result = await make_pipeline(content=b"<not xml").run()

        assert result.success is False
        assert scheduler.get_state().next_run_at == clock() + timedelta(minutes=20)
        assert content_repository.count_content_items() == 0

    async def test_empty_channel_is_successful_no_op(self, make_pipeline, scheduler):
        result = await make_pipeline(content=EMPTY_CHANNEL_FEED).run()

        assert result.success is True
        assert result.items_seen == 0
        assert scheduler.get_state() is None

    async def test_incomplete_items_rejected(self, make_pipeline, content_repository):
        feed = make_feed(
            "<title></title><body>Body</body><pubDate>Mon, 01 Jan 2024 12:00:00 GMT</pubDate>",
            "<title>No body</title><pubDate>Mon, 01 Jan 2024 12:00:00 GMT</pubDate>",
            "<title>Complete</title><body>Body</body><pubDate>Mon, 01 Jan 2024 12:00:00 GMT</pubDate>",
        )

        result = await make_pipeline(content=feed).run()

        assert result.items_seen == 3
        assert result.items_rejected == 2
        assert result.items_inserted == 1
        assert content_repository.list_content_items()[0].title == "Complete"

    async def test_unparseable_date_does_not_abort(self, make_pipeline, content_repository):
        feed = make_feed(
            "<title>Bad date</title><body>Body</body><pubDate>someday soon</pubDate>",
            "<title>Good date</title><body>Body</body><pubDate>Mon, 01 Jan 2024 12:00:00 GMT</pubDate>",
        )

        result = await make_pipeline(content=feed).run()

        assert result.items_inserted == 2
        timestamps = {item.title: item.publish_timestamp for item in content_repository.list_content_items()}
        assert timestamps["Bad date"] == "1970-01-01 00:00:00"
        assert timestamps["Good date"] == "2024-01-01 12:00:00"

    async def test_item_failure_does_not_abort_siblings(self, make_pipeline):
        pipeline = make_pipeline()
        original_ingest = pipeline.ingestor.ingest

        def flaky_ingest(record, raw_item, config):
            if raw_item.guid == "csl-news-1":
                raise InsertError("disk full", item_guid=raw_item.guid)
            return original_ingest(record, raw_item, config)

        with patch.object(pipeline.ingestor, "ingest", side_effect=flaky_ingest):
            result = await pipeline.run()

        assert result.success is True
        assert result.items_failed == 1
        assert result.items_inserted == 1
        assert "disk full" in result.errors[0]

    async def test_unexpected_item_error_counted_as_failure(self, make_pipeline):
        pipeline = make_pipeline()

        with patch.object(pipeline.normalizer, "normalize", side_effect=RuntimeError("bug")):
            result = await pipeline.run()

        assert result.success is True
        assert result.items_failed == 2

    async def test_sequential_with_single_worker(self, make_pipeline, test_settings):
        settings = test_settings.model_copy(
            update={"limits": test_settings.limits.model_copy(update={"max_workers": 1})}
        )
        result = await make_pipeline(settings=settings).run()

        assert result.items_inserted == 2

    async def test_interval_option_applied_to_scheduler(self, make_pipeline, options_repository, scheduler):
        options_repository.set("interval", "3")

        await make_pipeline().run()

        assert scheduler.interval_seconds == 3 * 3600

    async def test_status_and_author_options_applied(self, make_pipeline, options_repository, content_repository):
        options_repository.set("post_status", "draft")
        options_repository.set("author", "7")

        await make_pipeline().run()

        for item in content_repository.list_content_items():
            assert item.status.value == "draft"
            assert item.author_id == 7


class TestRunLock:
    """Test cases for single-run exclusion."""

    async def test_held_lock_drops_trigger(self, make_pipeline, tmp_path):
        lock = RunLock("csl_feed_import", lock_dir=str(tmp_path))
        fetcher = FakeFetcher()
        pipeline = make_pipeline(fetcher=fetcher, run_lock=lock)

        assert lock.acquire() is True
        try:
            result = await pipeline.run()
        finally:
            lock.release()

        assert result.skipped_locked is True
        assert fetcher.calls == []

    async def test_lock_released_after_run(self, make_pipeline, tmp_path):
        lock = RunLock("csl_feed_import", lock_dir=str(tmp_path))
        pipeline = make_pipeline(run_lock=lock)

        await pipeline.run()
        assert lock.locked is False

        second = await pipeline.run()
        assert second.skipped_locked is False

    async def test_lock_released_after_failed_run(self, make_pipeline, tmp_path):
        lock = RunLock("csl_feed_import", lock_dir=str(tmp_path))
        await make_pipeline(content=b"<not xml", run_lock=lock).run()
        assert lock.locked is False

    async def test_concurrent_runs_single_winner(self, make_pipeline, tmp_path):
        lock = RunLock("csl_feed_import", lock_dir=str(tmp_path))
        release = threading.Event()

        class BlockingFetcher(FakeFetcher):
            def fetch(self, url):
                release.wait(timeout=5)
                return super().fetch(url)

        pipeline = make_pipeline(fetcher=BlockingFetcher(), run_lock=lock)

        first = asyncio.create_task(pipeline.run())
        await asyncio.sleep(0.05)
        second = await pipeline.run()
        release.set()
        first_result = await first

        assert second.skipped_locked is True
        assert first_result.skipped_locked is False
        assert first_result.items_inserted == 2


def test_run_import_wrapper(db_connection, test_settings):
    with patch("csl_importer.processing.pipeline.FeedFetcher") as fetcher_class:
        fetcher_class.return_value.fetch.return_value = SAMPLE_RSS_FEED
        result = run_import(db_connection, settings=test_settings)

    assert result.success is True
    assert result.items_inserted == 2
