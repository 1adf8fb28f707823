"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for CSL importer tests.

- Every test gets its own temporary SQLite database
- Settings point at the temporary directory, never at data/ or logs/
- The feed is served by a fake fetcher, no network access
"""

import pytest
import os
import sys
from datetime import datetime, timezone, timedelta
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
os.environ["CSL_IMPORTER_LOGGING__CONSOLE_LOGGING"] = "false"
os.environ["CSL_IMPORTER_LOGGING__FILE_PATH"] = ""


# ============================================================================
# Sample Feed Documents
# ============================================================================

SAMPLE_RSS_FEED = b'''<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
    <channel>
        <title>Collegiate StarLeague</title>
        <link>https://cstarleague.com</link>
        <description>CSL news</description>
        <item>
            <title>Spring Finals Recap</title>
            <description>&lt;p&gt;The &lt;b&gt;finals&lt;/b&gt; are over.&lt;/p&gt;</description>
            <body><![CDATA[&lt;p&gt;Full recap of the &lt;em&gt;finals&lt;/em&gt;.&lt;/p&gt;]]></body>
            <author>news@cstarleague.com</author>
            <pubDate>Mon, 01 Jan 2024 12:00:00 GMT</pubDate>
            <guid>csl-news-1</guid>
        </item>
        <item>
            <title>Season Schedule Announced</title>
            <description>Dates for the new season.</description>
            <body><![CDATA[<p>The season starts in <strong>February</strong>.</p>]]></body>
            <pubDate>Tue, 02 Jan 2024 08:30:00 GMT</pubDate>
            <guid>csl-news-2</guid>
        </item>
    </channel>
</rss>'''

EMPTY_CHANNEL_FEED = b'''<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>Nothing here</title></channel></rss>'''


def make_feed(*items: str) -> bytes:
    """Build an RSS document from raw <item> inner XML strings."""
    body = "".join(f"<item>{item}</item>" for item in items)
    return f'<?xml version="1.0" encoding="UTF-8"?><rss version="2.0"><channel>{body}</channel></rss>'.encode("utf-8")


class FakeFetcher:
    """Feed fetcher returning a fixed document or raising a fixed error."""

    def __init__(self, content: bytes = SAMPLE_RSS_FEED, error: Exception = None):
        self.content = content
        self.error = error
        self.calls = []

    def fetch(self, url: str) -> bytes:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.content


class FixedClock:
    """Controllable clock for scheduler tests."""

    def __init__(self, now: datetime = None):
        self.current = now or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


# ============================================================================
# Global State
# ============================================================================


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset module level settings and database singletons between tests."""
    from csl_importer.config import settings as settings_module
    from csl_importer.database import connection as connection_module

    settings_module._settings = None
    connection_module._db_manager = None

    yield

    if connection_module._db_manager is not None:
        connection_module._db_manager.close_all_connections()
    settings_module._settings = None
    connection_module._db_manager = None


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def db_path(tmp_path):
    """Path to a fresh database with the schema created."""
    from csl_importer.database.schema import DatabaseSchema

    path = tmp_path / "csl_importer_test.db"
    DatabaseSchema(str(path)).create_tables()
    return str(path)


@pytest.fixture
def db_connection(db_path):
    """Create a database connection manager for testing."""
    from csl_importer.database.connection import DatabaseConnection

    connection = DatabaseConnection(db_path, pool_size=2)
    yield connection

    connection.close_all_connections()


@pytest.fixture
def content_repository(db_connection):
    from csl_importer.storage.content_repository import ContentRepository

    return ContentRepository(db_connection)


@pytest.fixture
def options_repository(db_connection):
    from csl_importer.storage.options_repository import OptionsRepository

    return OptionsRepository(db_connection)


# ============================================================================
# Settings and Pipeline Fixtures
# ============================================================================


@pytest.fixture
def test_settings(tmp_path, db_path):
    """Settings pointing at the temporary database and lock directory."""
    from csl_importer.config.settings import (
        ImporterSettings,
        DatabaseSettings,
        ScheduleSettings,
        LoggingSettings,
    )

    return ImporterSettings(
        database=DatabaseSettings(path=db_path, pool_size=2),
        schedule=ScheduleSettings(lock_dir=str(tmp_path / "locks")),
        logging=LoggingSettings(file_path=None, console_logging=False),
    )


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def scheduler(db_connection, clock):
    from csl_importer.scheduler.import_scheduler import ImportScheduler
    from csl_importer.storage.schedule_repository import ScheduleRepository

    return ImportScheduler(ScheduleRepository(db_connection), clock=clock)


@pytest.fixture
def ingestion_config():
    from csl_importer.database.models import IngestionConfig

    return IngestionConfig()


@pytest.fixture
def make_pipeline(db_connection, test_settings, scheduler):
    """Factory building a pipeline around a fake fetcher."""
    from csl_importer.processing.pipeline import FeedImportPipeline

    def _make(content: bytes = SAMPLE_RSS_FEED, error: Exception = None, **kwargs):
        fetcher = kwargs.pop("fetcher", None) or FakeFetcher(content, error)
        return FeedImportPipeline(
            db_connection,
            settings=kwargs.pop("settings", test_settings),
            scheduler=kwargs.pop("scheduler", scheduler),
            fetcher=fetcher,
            **kwargs,
        )

    return _make
