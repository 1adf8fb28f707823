"""
CSL Importer Database Schema
============================

SQLite schema for the content store:
- posts: imported content items
- terms: taxonomy terms (tag, conference, school)
- post_terms: content item to term relationships
- options: the import options bag (interval, author, post_status, default_media)
- scheduled_jobs: the single pending import run
"""

import sqlite3
import logging
from pathlib import Path

from .models import PostStatus

logger = logging.getLogger(__name__)

EXPECTED_TABLES = {"options", "post_terms", "posts", "scheduled_jobs", "terms"}


class DatabaseSchema:
    """Database schema manager for the importer SQLite database."""

    def __init__(self, db_path: str = "data/csl_importer.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables. Safe to call repeatedly."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("PRAGMA foreign_keys = ON")

            self._create_posts_table(conn)
            self._create_terms_table(conn)
            self._create_post_terms_table(conn)
            self._create_options_table(conn)
            self._create_scheduled_jobs_table(conn)

            self._create_indexes(conn)

            conn.commit()
            logger.info("Database schema created successfully")

    def _create_posts_table(self, conn: sqlite3.Connection) -> None:
        statuses = ", ".join(f"'{status.value}'" for status in PostStatus)
        conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS posts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                excerpt TEXT NOT NULL DEFAULT '',
                body TEXT NOT NULL,
                author_id INTEGER NOT NULL,
                post_date TEXT NOT NULL,
                guid TEXT NOT NULL DEFAULT '',
                status TEXT NOT NULL CHECK (status IN ({statuses})),
                featured_media_id INTEGER,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

    def _create_terms_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS terms (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                taxonomy TEXT NOT NULL,
                name TEXT NOT NULL,
                UNIQUE(taxonomy, name)
            )
        """
        )

    def _create_post_terms_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS post_terms (
                post_id INTEGER NOT NULL,
                term_id INTEGER NOT NULL,
                FOREIGN KEY (post_id) REFERENCES posts(id) ON DELETE CASCADE,
                FOREIGN KEY (term_id) REFERENCES terms(id) ON DELETE CASCADE,
                PRIMARY KEY (post_id, term_id)
            )
        """
        )

    def _create_options_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS options (
                name TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

    def _create_scheduled_jobs_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS scheduled_jobs (
                job_name TEXT PRIMARY KEY,
                next_run_at TIMESTAMP NOT NULL,
                interval_seconds REAL NOT NULL CHECK (interval_seconds > 0),
                updated_at TIMESTAMP NOT NULL
            )
        """
        )

    def _create_indexes(self, conn: sqlite3.Connection) -> None:
        indexes = [
            # Existence check is by title + date
            "CREATE INDEX IF NOT EXISTS idx_posts_title_date ON posts(title, post_date)",
            "CREATE INDEX IF NOT EXISTS idx_posts_guid ON posts(guid)",
            "CREATE INDEX IF NOT EXISTS idx_posts_created ON posts(created_at)",
            "CREATE INDEX IF NOT EXISTS idx_post_terms_term ON post_terms(term_id)",
        ]

        for index_sql in indexes:
            conn.execute(index_sql)

    def drop_tables(self) -> None:
        """Drop all tables (for testing/reset purposes)."""
        with sqlite3.connect(self.db_path) as conn:
            for table in ("post_terms", "terms", "posts", "options", "scheduled_jobs"):
                conn.execute(f"DROP TABLE IF EXISTS {table}")

            conn.commit()
            logger.info("All database tables dropped")

    def verify_schema(self) -> bool:
        """Verify that every expected table exists."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.execute(
                    """
                    SELECT name FROM sqlite_master
                    WHERE type='table' AND name NOT LIKE 'sqlite_%'
                """
                )
                tables = {row[0] for row in cursor.fetchall()}

            missing = EXPECTED_TABLES - tables
            if missing:
                logger.error(f"Missing tables: {sorted(missing)}")
                return False

            logger.info("Database schema verification passed")
            return True

        except sqlite3.Error as e:
            logger.error(f"Schema verification failed: {e}")
            return False


def create_tables(db_path: str = "data/csl_importer.db") -> None:
    """Convenience function to create database tables."""
    DatabaseSchema(db_path).create_tables()
