"""
Unit Tests for Repositories
===========================

Tests for the content, options and schedule repositories against a
temporary SQLite database.
"""

import pytest
import threading
from datetime import datetime, timezone, timedelta

from csl_importer.database.models import NormalizedRecord, PostStatus, ScheduleState
from csl_importer.storage.content_repository import ContentStore, ContentRepository
from csl_importer.storage.schedule_repository import ScheduleRepository
from csl_importer.utils.exceptions import DatabaseError, ValidationError


def make_record(title="Spring Finals Recap", date="2024-01-01 12:00:00", **overrides) -> NormalizedRecord:
    values = {
        "title": title,
        "excerpt": "Summary",
        "body": "<p>Body</p>",
        "author_id": 1,
        "publish_timestamp": date,
        "external_guid": "csl-news-1",
    }
    values.update(overrides)
    return NormalizedRecord(**values)


class TestContentRepository:
    """Test cases for ContentRepository."""

    def test_implements_content_store(self, content_repository):
        assert isinstance(content_repository, ContentStore)

    def test_create_and_get(self, content_repository):
        post_id = content_repository.create_content_item(make_record(status=PostStatus.DRAFT))

        item = content_repository.get_content_item(post_id)
        assert item.id == post_id
        assert item.title == "Spring Finals Recap"
        assert item.publish_timestamp == "2024-01-01 12:00:00"
        assert item.external_guid == "csl-news-1"
        assert item.status == PostStatus.DRAFT
        assert item.featured_media_id is None
        assert item.terms == {}

    def test_exists_matches_title_and_date(self, content_repository):
        content_repository.create_content_item(make_record())

        assert content_repository.content_item_exists("Spring Finals Recap", "2024-01-01 12:00:00")
        assert not content_repository.content_item_exists("Spring Finals Recap", "2024-01-02 12:00:00")
        assert not content_repository.content_item_exists("Other title", "2024-01-01 12:00:00")

    def test_create_if_absent(self, content_repository):
        first = content_repository.create_content_item_if_absent(make_record())
        second = content_repository.create_content_item_if_absent(make_record())

        assert first is not None
        assert second is None
        assert content_repository.count_content_items() == 1

    def test_create_if_absent_concurrent_single_winner(self, db_path):
        from csl_importer.database.connection import DatabaseConnection

        connection = DatabaseConnection(db_path, pool_size=4)
        repository = ContentRepository(connection)
        results = []

        def worker():
            results.append(repository.create_content_item_if_absent(make_record()))

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        connection.close_all_connections()

        assert len([r for r in results if r is not None]) == 1
        assert repository.count_content_items() == 1

    def test_attach_terms(self, content_repository):
        post_id = content_repository.create_content_item(make_record())

        content_repository.attach_terms(post_id, ["eSports", "Finals", "eSports", " "], "tag")
        content_repository.attach_terms(post_id, ["Collegiate Starleague"], "conference")

        assert content_repository.get_terms(post_id) == {
            "conference": ["Collegiate Starleague"],
            "tag": ["eSports", "Finals"],
        }

    def test_terms_shared_between_items(self, content_repository, db_connection):
        first = content_repository.create_content_item(make_record(title="A"))
        second = content_repository.create_content_item(make_record(title="B"))

        content_repository.attach_terms(first, ["eSports"], "tag")
        content_repository.attach_terms(second, ["eSports"], "tag")

        row = db_connection.execute_one("SELECT COUNT(*) AS total FROM terms")
        assert row["total"] == 1

    def test_attach_terms_unknown_item(self, content_repository):
        with pytest.raises(DatabaseError):
            content_repository.attach_terms(999, ["eSports"], "tag")

    def test_set_featured_media(self, content_repository):
        post_id = content_repository.create_content_item(make_record())
        content_repository.set_featured_media(post_id, 42)

        assert content_repository.get_content_item(post_id).featured_media_id == 42

    def test_set_featured_media_unknown_item(self, content_repository):
        with pytest.raises(DatabaseError):
            content_repository.set_featured_media(999, 42)

    def test_list_newest_first(self, content_repository):
        for title in ("A", "B", "C"):
            content_repository.create_content_item(make_record(title=title))

        titles = [item.title for item in content_repository.list_content_items(limit=2)]
        assert titles == ["C", "B"]

    def test_get_missing_item(self, content_repository):
        assert content_repository.get_content_item(12345) is None


class TestOptionsRepository:
    """Test cases for the options bag."""

    def test_set_get_unset(self, options_repository):
        assert options_repository.get("interval") is None

        assert options_repository.set("interval", " 2 ") == "2"
        assert options_repository.get("interval") == "2"

        assert options_repository.unset("interval") is True
        assert options_repository.unset("interval") is False
        assert options_repository.get("interval", "1") == "1"

    def test_set_overwrites(self, options_repository):
        options_repository.set("author", "3")
        options_repository.set("author", "5")
        assert options_repository.all() == {"author": "5"}

    def test_post_status_alias_normalized(self, options_repository):
        assert options_repository.set("post_status", "publish") == "published"

    @pytest.mark.parametrize("name,value", [
        ("interval", "0"),
        ("interval", "often"),
        ("author", "-1"),
        ("default_media", "abc"),
        ("post_status", "archived"),
        ("timezone", "Nowhere/City"),
        ("unknown", "1"),
        ("interval", ""),
    ])
    def test_invalid_values_rejected(self, options_repository, name, value):
        with pytest.raises(ValidationError):
            options_repository.set(name, value)
        assert options_repository.all() == {}

    def test_load_ingestion_config(self, options_repository, test_settings):
        options_repository.set("interval", "2")
        options_repository.set("author", "4")
        options_repository.set("post_status", "draft")
        options_repository.set("default_media", "99")

        config = options_repository.load_ingestion_config(test_settings)

        assert config.interval_hours == 2.0
        assert config.interval_seconds == 7200
        assert config.default_author_id == 4
        assert config.post_status == PostStatus.DRAFT
        assert config.default_media_id == 99
        assert config.timezone == "UTC"

    def test_load_ingestion_config_defaults(self, options_repository, test_settings):
        config = options_repository.load_ingestion_config(test_settings)

        assert config.interval_hours == test_settings.schedule.default_interval_hours
        assert config.default_author_id == test_settings.site.default_author_id
        assert config.post_status is None
        assert config.default_media_id is None

    def test_unknown_stored_status_ignored(self, options_repository, db_connection, test_settings):
        # Written around validation, e.g. by an older version
        db_connection.execute_update(
            "INSERT INTO options (name, value) VALUES ('post_status', 'archived')"
        )

        config = options_repository.load_ingestion_config(test_settings)
        assert config.post_status is None


class TestScheduleRepository:
    """Test cases for schedule persistence."""

    def test_save_and_get(self, db_connection):
        repository = ScheduleRepository(db_connection)
        next_run = datetime(2024, 1, 1, 13, 0, tzinfo=timezone.utc)

        repository.save(ScheduleState(job_name="csl_feed_import", next_run_at=next_run, interval_seconds=3600))
        state = repository.get("csl_feed_import")

        assert state.next_run_at == next_run
        assert state.interval_seconds == 3600
        assert state.updated_at is not None

    def test_save_replaces_entry(self, db_connection):
        repository = ScheduleRepository(db_connection)
        first = datetime(2024, 1, 1, 13, 0, tzinfo=timezone.utc)

        repository.save(ScheduleState(job_name="job", next_run_at=first))
        repository.save(ScheduleState(job_name="job", next_run_at=first + timedelta(minutes=20)))

        assert repository.get("job").next_run_at == first + timedelta(minutes=20)
        row = db_connection.execute_one("SELECT COUNT(*) AS total FROM scheduled_jobs")
        assert row["total"] == 1

    def test_times_stored_as_utc(self, db_connection):
        repository = ScheduleRepository(db_connection)
        local = datetime(2024, 1, 1, 8, 0, tzinfo=timezone(timedelta(hours=-5)))

        repository.save(ScheduleState(job_name="job", next_run_at=local))

        assert repository.get("job").next_run_at == datetime(2024, 1, 1, 13, 0, tzinfo=timezone.utc)

    def test_delete(self, db_connection):
        repository = ScheduleRepository(db_connection)
        repository.save(ScheduleState(job_name="job", next_run_at=datetime.now(timezone.utc)))

        assert repository.delete("job") is True
        assert repository.delete("job") is False
        assert repository.get("job") is None
