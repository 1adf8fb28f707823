"""
Item Normalizer
===============

Maps a RawFeedItem to a NormalizedRecord.

Each field has its own handler producing a fragment of the record. Handlers
are independent: a failing handler is logged as a degradation and only its
own field is left empty, so the insertion gate can reject the record.
"""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as date_parser

from ..database.models import (
    RawFeedItem,
    NormalizedRecord,
    IngestionConfig,
    PostStatus,
    DATE_FORMAT,
)
from ..utils.logging import get_logger_for_component
from .content_cleaner import ContentCleaner

FALLBACK_AUTHOR_ID = 1
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

Fragment = Dict[str, Any]
FieldHandler = Callable[[RawFeedItem, IngestionConfig], Fragment]


class ItemNormalizer:
    """Builds normalized records from raw feed items."""

    def __init__(self, cleaner: ContentCleaner = None):
        self.cleaner = cleaner or ContentCleaner()
        self.logger = get_logger_for_component("item_normalizer")

        self.handlers: List[Tuple[str, FieldHandler]] = [
            ("title", self.normalize_title),
            ("excerpt", self.normalize_excerpt),
            ("body", self.normalize_body),
            ("author_id", self.normalize_author),
            ("publish_timestamp", self.normalize_publish_timestamp),
            ("external_guid", self.normalize_guid),
            ("status", self.normalize_status),
        ]

    def normalize(self, item: RawFeedItem, config: IngestionConfig) -> NormalizedRecord:
        """Run every field handler and merge the fragments into a record."""
        fields: Fragment = {}

        for field_name, handler in self.handlers:
            try:
                fields.update(handler(item, config))
            except Exception as e:
                self.logger.warning(
                    f"Normalization degraded for field '{field_name}': {e}",
                    extra={"field": field_name, "item_guid": item.guid},
                )

        return NormalizedRecord(**fields)

    def normalize_title(self, item: RawFeedItem, config: IngestionConfig) -> Fragment:
        return {"title": self.cleaner.strip_all_tags(item.title)}

    def normalize_excerpt(self, item: RawFeedItem, config: IngestionConfig) -> Fragment:
        return {"excerpt": self.cleaner.strip_all_tags(item.description)}

    def normalize_body(self, item: RawFeedItem, config: IngestionConfig) -> Fragment:
        decoded = self.cleaner.decode_entities(item.body)
        return {"body": self.cleaner.sanitize_html(decoded)}

    def normalize_author(self, item: RawFeedItem, config: IngestionConfig) -> Fragment:
        return {"author_id": config.default_author_id or FALLBACK_AUTHOR_ID}

    def normalize_publish_timestamp(self, item: RawFeedItem, config: IngestionConfig) -> Fragment:
        published = self.parse_date(item.pub_date)
        local = published.astimezone(self.resolve_timezone(config.timezone))
        return {"publish_timestamp": local.strftime(DATE_FORMAT)}

    def normalize_guid(self, item: RawFeedItem, config: IngestionConfig) -> Fragment:
        return {"external_guid": self.cleaner.sanitize_text_field(item.guid)}

    def normalize_status(self, item: RawFeedItem, config: IngestionConfig) -> Fragment:
        return {"status": config.post_status or PostStatus.PUBLISHED}

    def parse_date(self, value: str) -> datetime:
        """Parse a feed date string to an aware UTC datetime.

        Naive values are taken as UTC. Unparseable or missing values map to
        the Unix epoch.
        """
        text = (value or "").strip()
        if not text:
            self.logger.warning("Normalization degraded: missing pubDate, using epoch")
            return EPOCH

        parsed = self._parse_rfc822(text)
        if parsed is None:
            try:
                parsed = date_parser.parse(text)
            except Exception as e:
                self.logger.warning(
                    f"Normalization degraded: unparseable pubDate '{text}', using epoch: {e}"
                )
                return EPOCH

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    @staticmethod
    def _parse_rfc822(text: str) -> Optional[datetime]:
        # Resolves named zones (EST, PDT, UT...) that dateutil leaves naive
        try:
            return parsedate_to_datetime(text)
        except (TypeError, ValueError, IndexError, OverflowError):
            return None

    def resolve_timezone(self, name: str):
        try:
            return ZoneInfo(name or "UTC")
        except (ZoneInfoNotFoundError, ValueError):
            self.logger.warning(f"Unknown timezone '{name}', using UTC")
            return timezone.utc
