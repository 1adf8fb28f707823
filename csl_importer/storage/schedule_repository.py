"""
Schedule Repository
===================

Persistence of scheduled job entries. Times are stored as UTC ISO strings.
"""

import sqlite3
from datetime import datetime, timezone
from typing import Optional

from ..database.models import ScheduleState
from ..database.connection import DatabaseConnection
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import SchedulerError


class ScheduleRepository:
    """Repository for scheduled_jobs rows."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("schedule_repository")

    def get(self, job_name: str) -> Optional[ScheduleState]:
        """Get the entry for a job, or None if nothing is scheduled."""
        try:
            row = self.db.execute_one(
                "SELECT * FROM scheduled_jobs WHERE job_name = ?", (job_name,)
            )
        except sqlite3.Error as e:
            raise SchedulerError(f"Failed to read schedule: {e}", job_name=job_name) from e

        if row is None:
            return None

        return ScheduleState(
            job_name=row["job_name"],
            next_run_at=_from_storage(row["next_run_at"]),
            interval_seconds=row["interval_seconds"],
            updated_at=_from_storage(row["updated_at"]),
        )

    def save(self, state: ScheduleState) -> None:
        """Insert or replace the entry for ``state.job_name``."""
        if state.next_run_at is None:
            self.delete(state.job_name)
            return

        updated_at = state.updated_at or datetime.now(timezone.utc)
        try:
            self.db.execute_update(
                """
                INSERT INTO scheduled_jobs (job_name, next_run_at, interval_seconds, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(job_name) DO UPDATE SET
                    next_run_at = excluded.next_run_at,
                    interval_seconds = excluded.interval_seconds,
                    updated_at = excluded.updated_at
                """,
                (
                    state.job_name,
                    _to_storage(state.next_run_at),
                    state.interval_seconds,
                    _to_storage(updated_at),
                ),
            )
        except sqlite3.Error as e:
            raise SchedulerError(f"Failed to save schedule: {e}", job_name=state.job_name) from e

        self.logger.debug(f"Saved {state}")

    def delete(self, job_name: str) -> bool:
        """Remove the entry. Returns True if one existed."""
        try:
            deleted = self.db.execute_update(
                "DELETE FROM scheduled_jobs WHERE job_name = ?", (job_name,)
            )
        except sqlite3.Error as e:
            raise SchedulerError(f"Failed to clear schedule: {e}", job_name=job_name) from e
        return deleted > 0


def _to_storage(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _from_storage(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
