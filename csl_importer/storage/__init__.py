"""
CSL Importer Storage Layer
==========================

Repository pattern implementations for data access abstraction.

This module provides:
- Content repository for imported items and their taxonomy
- Options repository for the import options bag
- Schedule repository for the pending import run
"""

from .content_repository import ContentStore, ContentRepository
from .options_repository import OptionsRepository
from .schedule_repository import ScheduleRepository

__all__ = [
    "ContentStore",
    "ContentRepository",
    "OptionsRepository",
    "ScheduleRepository",
]
