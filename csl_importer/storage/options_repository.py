"""
Options Repository
==================

The options bag: per-site import options stored next to the content.

Known options:
- interval: hours between scheduled runs
- author: id of the author assigned to imported items
- post_status: status given to imported items
- default_media: media id attached as featured media
- timezone: timezone used for publish dates
"""

import sqlite3
from typing import Dict, Optional

from ..config.settings import ImporterSettings
from ..database.models import IngestionConfig, PostStatus
from ..database.connection import DatabaseConnection
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode
from ..utils.validators import validate_option_value


class OptionsRepository:
    """Repository for the key-value options bag."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("options_repository")

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        try:
            row = self.db.execute_one("SELECT value FROM options WHERE name = ?", (name,))
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to read option '{name}': {e}") from e
        return row["value"] if row else default

    def all(self) -> Dict[str, str]:
        """All stored options."""
        try:
            rows = self.db.execute_query("SELECT name, value FROM options ORDER BY name")
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to read options: {e}") from e
        return {row["name"]: row["value"] for row in rows}

    def set(self, name: str, value: str) -> str:
        """Validate and store an option.

        Returns:
            The normalized value that was stored

        Raises:
            ValidationError: If the option name or value is invalid
            DatabaseError: If the write fails
        """
        normalized = validate_option_value(name, value)

        try:
            self.db.execute_update(
                """
                INSERT INTO options (name, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(name) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (name, normalized),
            )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to store option '{name}': {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

        self.logger.info(f"Option '{name}' set to '{normalized}'")
        return normalized

    def unset(self, name: str) -> bool:
        """Remove an option. Returns True if it was stored."""
        try:
            deleted = self.db.execute_update("DELETE FROM options WHERE name = ?", (name,))
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to remove option '{name}': {e}") from e

        if deleted:
            self.logger.info(f"Option '{name}' removed")
        return deleted > 0

    def load_ingestion_config(self, settings: ImporterSettings) -> IngestionConfig:
        """Read the options bag once and build the config for a run.

        Unusable stored values are logged and ignored; settings provide the
        defaults for interval, author and timezone.
        """
        options = self.all()

        status = options.get("post_status")
        if status is not None and PostStatus.from_option(status) is None:
            self.logger.warning(f"Ignoring unknown post_status option '{status}'")

        for name in ("interval", "author", "default_media"):
            value = options.get(name)
            if value is not None and not _is_positive_number(value):
                self.logger.warning(f"Ignoring invalid {name} option '{value}'")

        config = IngestionConfig.from_options(
            options,
            default_interval_hours=settings.schedule.default_interval_hours,
            timezone=settings.site.timezone,
        )

        if config.default_author_id is None:
            config = config.model_copy(update={"default_author_id": settings.site.default_author_id})

        return config


def _is_positive_number(value: str) -> bool:
    try:
        return float(value) > 0
    except (TypeError, ValueError):
        return False
