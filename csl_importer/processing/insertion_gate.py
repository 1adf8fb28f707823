"""
Insertion Gate
==============

Decides whether a normalized record should become a new content item.
"""

from ..database.models import NormalizedRecord
from ..storage.content_repository import ContentStore
from ..utils.logging import get_logger_for_component


class InsertionGate:
    """Rejects incomplete records and records already in the store."""

    def __init__(self, store: ContentStore):
        self.store = store
        self.logger = get_logger_for_component("insertion_gate")

    def should_insert(self, record: NormalizedRecord) -> bool:
        """Return True if the record is complete and not yet stored.

        A failed existence check counts as a rejection.
        """
        if not record.title:
            self.logger.debug("Rejected record with empty title", extra={"item_guid": record.external_guid})
            return False

        if not record.body:
            self.logger.debug(f"Rejected '{record.title[:50]}': empty body")
            return False

        try:
            exists = self.store.content_item_exists(record.title, record.publish_timestamp)
        except Exception as e:
            self.logger.error(f"Existence check failed for '{record.title[:50]}', rejecting: {e}")
            return False

        if exists:
            self.logger.debug(f"Rejected '{record.title[:50]}': already imported")
            return False

        return True
