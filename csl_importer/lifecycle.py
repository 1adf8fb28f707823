"""
Importer Lifecycle
==================

Install-time hooks of the importer:
- activate: schedule the first import one interval from now
- deactivate: remove the pending import
- setup: register the import run with the scheduler
"""

from typing import Optional

from .database.models import ScheduleState
from .processing.pipeline import FeedImportPipeline
from .scheduler.import_scheduler import ImportScheduler
from .utils.logging import get_logger_for_component

logger = get_logger_for_component("lifecycle")


def activate(scheduler: ImportScheduler) -> ScheduleState:
    """Enable importing by scheduling the next run."""
    state = scheduler.schedule_next()
    logger.info("Importer activated")
    return state


def deactivate(scheduler: ImportScheduler) -> bool:
    """Disable importing. Returns True if a run was pending."""
    cleared = scheduler.clear()
    logger.info("Importer deactivated")
    return cleared


def setup(pipeline: FeedImportPipeline, scheduler: Optional[ImportScheduler] = None) -> ImportScheduler:
    """Register the pipeline run as the scheduler callback. Safe to call repeatedly."""
    scheduler = scheduler or pipeline.scheduler
    scheduler.setup(pipeline.run)
    return scheduler
