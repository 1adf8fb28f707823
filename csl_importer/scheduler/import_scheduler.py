"""
Import Scheduler
================

Owns the single named schedule entry of the feed import.

The entry is either absent (unscheduled) or holds the time of the next run.
Scheduling always replaces the entry, so at most one run is ever pending.
After a failed run the entry is moved to a short backoff instead of the
normal interval.

The service loop (``serve``) polls the entry and fires the registered
callback when it is due. Cron-style setups can call ``run_pending`` instead.
"""

import asyncio
import inspect
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional, Union

from ..database.models import ScheduleState
from ..storage.schedule_repository import ScheduleRepository
from ..utils.logging import get_logger_for_component

RunCallback = Callable[[], Union[Any, Awaitable[Any]]]
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ImportScheduler:
    """Schedule state machine for the import job."""

    def __init__(
        self,
        repository: ScheduleRepository,
        job_name: str = "csl_feed_import",
        interval_seconds: float = 3600.0,
        retry_backoff_minutes: int = 20,
        clock: Optional[Clock] = None,
    ):
        """Initialize scheduler.

        Args:
            repository: Persistence for the schedule entry
            job_name: Name of the entry
            interval_seconds: Delay between regular runs
            retry_backoff_minutes: Delay before retrying a failed run
            clock: Returns the current aware UTC time, replaceable in tests
        """
        self.repository = repository
        self.job_name = job_name
        self.interval_seconds = interval_seconds
        self.retry_backoff = timedelta(minutes=retry_backoff_minutes)
        self.clock = clock or utc_now
        self.logger = get_logger_for_component("scheduler")

        self._callback: Optional[RunCallback] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def callback(self) -> Optional[RunCallback]:
        return self._callback

    def now(self) -> datetime:
        return self.clock()

    def set_interval(self, interval_seconds: float) -> None:
        if interval_seconds > 0:
            self.interval_seconds = interval_seconds

    def get_state(self) -> Optional[ScheduleState]:
        """Current entry, or None when unscheduled."""
        return self.repository.get(self.job_name)

    def is_due(self, now: Optional[datetime] = None) -> bool:
        state = self.get_state()
        return state is not None and state.is_due(now or self.now())

    def schedule_next(self, at: Optional[datetime] = None) -> ScheduleState:
        """Replace the entry with one firing at ``at`` (default: now + interval)."""
        now = self.now()
        if at is None:
            at = now + timedelta(seconds=self.interval_seconds)

        self.clear()

        state = ScheduleState(
            job_name=self.job_name,
            next_run_at=at,
            interval_seconds=self.interval_seconds,
            updated_at=now,
        )
        self.repository.save(state)

        self.logger.info(f"Next import scheduled at {at.isoformat()}")
        return state

    def clear(self) -> bool:
        """Remove any pending entry. Returns True if one existed."""
        cleared = self.repository.delete(self.job_name)
        if cleared:
            self.logger.debug(f"Cleared schedule entry '{self.job_name}'")
        return cleared

    def setup(self, callback: RunCallback) -> None:
        """Register the run callback. Registering the same callback again is a no-op."""
        if self._callback is callback or self._callback == callback:
            return
        if self._callback is not None:
            self.logger.info("Replacing registered import callback")
        self._callback = callback

    def handle_failure(self) -> ScheduleState:
        """Move the entry to a retry after the backoff delay."""
        self.clear()
        retry_at = self.now() + self.retry_backoff
        self.logger.warning(f"Import failed, retrying at {retry_at.isoformat()}")
        return self.schedule_next(retry_at)

    async def run_pending(self) -> Optional[Any]:
        """Fire the callback if the entry is due.

        After the run the entry is moved to the normal interval, unless the
        run itself rescheduled (e.g. a failure backoff).

        Returns:
            The callback result, or None if nothing was due
        """
        if self._callback is None:
            self.logger.debug("No import callback registered")
            return None

        state = self.get_state()
        now = self.now()
        if state is None or not state.is_due(now):
            return None

        self.logger.info(f"Import due since {state.next_run_at.isoformat()}, running")

        try:
            result = self._callback()
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            self.logger.error(f"Import run raised: {e}", exc_info=True)
            self.handle_failure()
            return None

        after = self.get_state()
        if after is None or after.next_run_at == state.next_run_at:
            self.schedule_next()

        return result

    async def serve(self, poll_seconds: float = 60.0) -> None:
        """Run the schedule until ``stop()`` is called or the task is cancelled."""
        self._stop_event = asyncio.Event()
        self.logger.info(f"Scheduler service started, polling every {poll_seconds}s")

        if self.get_state() is None:
            self.logger.warning("No import is scheduled; run 'activate' to start importing")

        try:
            while not self._stop_event.is_set():
                try:
                    await self.run_pending()
                except Exception as e:
                    self.logger.error(f"Scheduler iteration failed: {e}", exc_info=True)

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=poll_seconds)
                except asyncio.TimeoutError:
                    pass
        finally:
            self.logger.info("Scheduler service stopped")

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
