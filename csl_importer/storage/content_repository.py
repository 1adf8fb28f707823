"""
Content Repository
==================

The content store used by the import pipeline, and its SQLite
implementation.
"""

import sqlite3
from typing import Dict, Iterable, List, Optional, Protocol, runtime_checkable

from ..database.models import NormalizedRecord, PersistedContentItem
from ..database.connection import DatabaseConnection
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode


@runtime_checkable
class ContentStore(Protocol):
    """Operations the pipeline needs from a content store."""

    def create_content_item(self, record: NormalizedRecord) -> int:
        ...

    def content_item_exists(self, title: str, publish_timestamp: str) -> bool:
        ...

    def create_content_item_if_absent(self, record: NormalizedRecord) -> Optional[int]:
        ...

    def attach_terms(self, post_id: int, terms: Iterable[str], taxonomy: str) -> List[int]:
        ...

    def set_featured_media(self, post_id: int, media_id: int) -> None:
        ...


_INSERT_POST = """
    INSERT INTO posts (title, excerpt, body, author_id, post_date, guid, status)
    VALUES (?, ?, ?, ?, ?, ?, ?)
"""

_EXISTS_POST = "SELECT 1 FROM posts WHERE title = ? AND post_date = ? LIMIT 1"


class ContentRepository:
    """SQLite content store: posts, taxonomy terms and featured media."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize content repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("content_repository")

    def create_content_item(self, record: NormalizedRecord) -> int:
        """Insert a new content item.

        Returns:
            Assigned content item id

        Raises:
            DatabaseError: If the insert fails
        """
        try:
            with self.db.transaction() as conn:
                post_id = self._insert(conn, record)

            self.logger.debug(f"Created content item {post_id}: {record.title[:50]}")
            return post_id

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to create content item: {e}",
                query="INSERT INTO posts",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def content_item_exists(self, title: str, publish_timestamp: str) -> bool:
        """Check for an item with exactly this title and publish date.

        Raises:
            DatabaseError: If the lookup fails
        """
        try:
            row = self.db.execute_one(_EXISTS_POST, (title, publish_timestamp))
            return row is not None

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to check content item existence: {e}",
                query=_EXISTS_POST.strip(),
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def create_content_item_if_absent(self, record: NormalizedRecord) -> Optional[int]:
        """Insert the item unless one with the same title and date exists.

        The check and the insert share one write-locked transaction, so two
        workers cannot both create the same item.

        Returns:
            New content item id, or None if the item already exists

        Raises:
            DatabaseError: If the transaction fails
        """
        try:
            with self.db.transaction() as conn:
                existing = conn.execute(
                    _EXISTS_POST, (record.title, record.publish_timestamp)
                ).fetchone()
                if existing is not None:
                    return None

                post_id = self._insert(conn, record)

            self.logger.debug(f"Created content item {post_id}: {record.title[:50]}")
            return post_id

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to create content item: {e}",
                query="INSERT INTO posts",
                error_code=ErrorCode.DATABASE_TRANSACTION,
            ) from e

    def _insert(self, conn: sqlite3.Connection, record: NormalizedRecord) -> int:
        cursor = conn.execute(
            _INSERT_POST,
            (
                record.title,
                record.excerpt,
                record.body,
                record.author_id,
                record.publish_timestamp,
                record.external_guid,
                record.status.value,
            ),
        )
        return cursor.lastrowid

    def attach_terms(self, post_id: int, terms: Iterable[str], taxonomy: str) -> List[int]:
        """Attach terms of one taxonomy to a content item, creating missing terms.

        Args:
            post_id: Content item id
            terms: Term names; blank names are skipped
            taxonomy: Taxonomy name

        Returns:
            Ids of the attached terms

        Raises:
            DatabaseError: If the item does not exist or the write fails
        """
        names = []
        for term in terms:
            name = str(term).strip()
            if name and name not in names:
                names.append(name)

        if not names:
            return []

        try:
            with self.db.transaction() as conn:
                if conn.execute("SELECT 1 FROM posts WHERE id = ?", (post_id,)).fetchone() is None:
                    raise DatabaseError(
                        f"Content item {post_id} does not exist",
                        error_code=ErrorCode.DATABASE_CONSTRAINT,
                        recoverable=False,
                    )

                term_ids = []
                for name in names:
                    conn.execute(
                        "INSERT OR IGNORE INTO terms (taxonomy, name) VALUES (?, ?)",
                        (taxonomy, name),
                    )
                    term_id = conn.execute(
                        "SELECT id FROM terms WHERE taxonomy = ? AND name = ?",
                        (taxonomy, name),
                    ).fetchone()["id"]
                    conn.execute(
                        "INSERT OR IGNORE INTO post_terms (post_id, term_id) VALUES (?, ?)",
                        (post_id, term_id),
                    )
                    term_ids.append(term_id)

            self.logger.debug(f"Attached {taxonomy} terms {names} to content item {post_id}")
            return term_ids

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to attach {taxonomy} terms to content item {post_id}: {e}",
                error_code=ErrorCode.DATABASE_TRANSACTION,
            ) from e

    def set_featured_media(self, post_id: int, media_id: int) -> None:
        """Set the featured media reference of a content item.

        Raises:
            DatabaseError: If the item does not exist or the write fails
        """
        try:
            updated = self.db.execute_update(
                "UPDATE posts SET featured_media_id = ? WHERE id = ?",
                (media_id, post_id),
            )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to set featured media of content item {post_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

        if updated == 0:
            raise DatabaseError(
                f"Content item {post_id} does not exist",
                error_code=ErrorCode.DATABASE_CONSTRAINT,
                recoverable=False,
            )

    def get_terms(self, post_id: int) -> Dict[str, List[str]]:
        """Get the terms of a content item grouped by taxonomy."""
        rows = self.db.execute_query(
            """
            SELECT t.taxonomy, t.name FROM terms t
            JOIN post_terms pt ON pt.term_id = t.id
            WHERE pt.post_id = ?
            ORDER BY t.taxonomy, t.id
            """,
            (post_id,),
        )

        terms: Dict[str, List[str]] = {}
        for row in rows:
            terms.setdefault(row["taxonomy"], []).append(row["name"])
        return terms

    def get_content_item(self, post_id: int) -> Optional[PersistedContentItem]:
        """Get a content item with its terms, or None if not found."""
        row = self.db.execute_one("SELECT * FROM posts WHERE id = ?", (post_id,))
        if row is None:
            return None
        return self._row_to_item(row)

    def list_content_items(self, limit: int = 20) -> List[PersistedContentItem]:
        """Most recently created content items first."""
        rows = self.db.execute_query(
            "SELECT * FROM posts ORDER BY id DESC LIMIT ?", (limit,)
        )
        return [self._row_to_item(row) for row in rows]

    def count_content_items(self) -> int:
        row = self.db.execute_one("SELECT COUNT(*) AS total FROM posts")
        return row["total"] if row else 0

    def _row_to_item(self, row: sqlite3.Row) -> PersistedContentItem:
        return PersistedContentItem(
            id=row["id"],
            title=row["title"],
            excerpt=row["excerpt"],
            body=row["body"],
            author_id=row["author_id"],
            publish_timestamp=row["post_date"],
            external_guid=row["guid"],
            status=row["status"],
            featured_media_id=row["featured_media_id"],
            terms=self.get_terms(row["id"]),
            created_at=row["created_at"],
        )
