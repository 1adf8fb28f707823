"""
Content Ingestor
================

Persists an accepted record and attaches its taxonomy and featured media.

Only the creation of the content item can fail the ingest. Every attachment
after it is independent: a failed attachment is logged and the remaining
ones still run, and the created item is never rolled back.
"""

from typing import Callable, Dict, Iterable, List, Optional

from ..database.models import (
    NormalizedRecord,
    RawFeedItem,
    IngestionConfig,
    PersistedContentItem,
    TAXONOMY_TAG,
    TAXONOMY_CONFERENCE,
    TAXONOMY_SCHOOL,
    DEFAULT_TAGS,
    CONFERENCE_TERM,
    SCHOOL_TERM,
)
from ..storage.content_repository import ContentStore
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import InsertError, TaxonomyAttachError, MediaAttachError

# (default_tags, post_id, raw_item) -> tag names to add, or None
TagProvider = Callable[[List[str], int, RawFeedItem], Optional[Iterable[str]]]


class ContentIngestor:
    """Creates content items in a ContentStore."""

    def __init__(self, store: ContentStore, tag_provider: Optional[TagProvider] = None):
        """Initialize content ingestor.

        Args:
            store: Content store to write to
            tag_provider: Optional hook extending the default tag set
        """
        self.store = store
        self.tag_provider = tag_provider
        self.logger = get_logger_for_component("content_ingestor")

    def ingest(
        self,
        record: NormalizedRecord,
        raw_item: RawFeedItem,
        config: IngestionConfig,
    ) -> Optional[PersistedContentItem]:
        """Create the content item and attach terms and media.

        Returns:
            The persisted item, or None if an identical item was created
            concurrently

        Raises:
            InsertError: If the content item could not be created
        """
        try:
            post_id = self.store.create_content_item_if_absent(record)
        except Exception as e:
            raise InsertError(
                f"Failed to create content item '{record.title[:50]}': {e}",
                item_guid=record.external_guid or None,
            ) from e

        if not post_id:
            self.logger.info(f"'{record.title[:50]}' was imported concurrently, skipping")
            return None

        logger = self.logger.bind(post_id=post_id, item_guid=record.external_guid)
        logger.info(f"Created content item {post_id}: {record.title[:80]}")

        terms: Dict[str, List[str]] = {}

        for taxonomy, resolve in (
            (TAXONOMY_TAG, lambda: self.resolve_tags(post_id, raw_item)),
            (TAXONOMY_CONFERENCE, lambda: [CONFERENCE_TERM]),
            (TAXONOMY_SCHOOL, lambda: [SCHOOL_TERM]),
        ):
            try:
                names = resolve()
                self._attach(post_id, names, taxonomy)
                terms[taxonomy] = list(names)
            except TaxonomyAttachError as e:
                logger.error(f"Failed to attach {taxonomy} terms: {e}", extra=e.to_dict())
            except Exception as e:
                logger.error(f"Failed to resolve {taxonomy} terms: {e}", exc_info=True)

        featured_media_id = None
        if config.default_media_id:
            try:
                self._set_media(post_id, config.default_media_id)
                featured_media_id = config.default_media_id
            except MediaAttachError as e:
                logger.error(f"Failed to set featured media: {e}", extra=e.to_dict())

        return PersistedContentItem(
            id=post_id,
            title=record.title,
            excerpt=record.excerpt,
            body=record.body,
            author_id=record.author_id,
            publish_timestamp=record.publish_timestamp,
            external_guid=record.external_guid,
            status=record.status,
            featured_media_id=featured_media_id,
            terms=terms,
        )

    def resolve_tags(self, post_id: int, raw_item: RawFeedItem) -> List[str]:
        """Default tags plus whatever the tag provider adds."""
        tags = list(DEFAULT_TAGS)
        if self.tag_provider is None:
            return tags

        # Partial output of a failing provider is discarded
        try:
            extra = self.tag_provider(list(DEFAULT_TAGS), post_id, raw_item)
            if extra is None:
                return tags
            if isinstance(extra, str):
                extra = [extra]

            added: List[str] = []
            for tag in extra:
                name = str(tag).strip()
                if name and name not in tags and name not in added:
                    added.append(name)
        except Exception as e:
            self.logger.warning(f"Tag provider failed for content item {post_id}, using default tags: {e}")
            return tags

        return tags + added

    def _attach(self, post_id: int, names: List[str], taxonomy: str) -> None:
        try:
            self.store.attach_terms(post_id, names, taxonomy)
        except Exception as e:
            raise TaxonomyAttachError(
                f"Could not attach {taxonomy} terms to content item {post_id}: {e}",
                taxonomy=taxonomy,
                post_id=post_id,
            ) from e

    def _set_media(self, post_id: int, media_id: int) -> None:
        try:
            self.store.set_featured_media(post_id, media_id)
        except Exception as e:
            raise MediaAttachError(
                f"Could not set featured media {media_id} on content item {post_id}: {e}",
                media_id=media_id,
                post_id=post_id,
            ) from e
