"""
CSL Importer Data Models
========================

Pydantic models for the values flowing through the import pipeline: the raw
feed item produced by the parser, the normalized record built from it, the
per-run ingestion config, the persisted content item and the schedule state.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Any
from dataclasses import dataclass, field
from pydantic import BaseModel, Field, field_validator

# Fixed taxonomy applied to every imported item
TAXONOMY_TAG = "tag"
TAXONOMY_CONFERENCE = "conference"
TAXONOMY_SCHOOL = "school"

DEFAULT_TAGS = ("eSports",)
CONFERENCE_TERM = "Collegiate Starleague"
SCHOOL_TERM = "eSports"

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class PostStatus(str, Enum):
    """Known content statuses of the store."""
    PUBLISHED = "published"
    DRAFT = "draft"
    PENDING = "pending"
    PRIVATE = "private"

    @classmethod
    def from_option(cls, value: Any) -> Optional["PostStatus"]:
        """Resolve an option value to a known status, or None if unknown."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower()
        if normalized == "publish":
            return cls.PUBLISHED
        try:
            return cls(normalized)
        except ValueError:
            return None


class RawFeedItem(BaseModel):
    """One <item> of the feed channel, as found in the document."""
    title: str = ""
    description: str = ""
    body: str = ""
    author: str = ""
    pub_date: str = ""
    guid: str = ""

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return f"RawFeedItem({self.guid or self.title[:50]})"


class NormalizedRecord(BaseModel):
    """Sanitized, locally shaped representation of a feed item."""
    title: str = Field(default="", description="Plain text title")
    excerpt: str = Field(default="", description="Plain text excerpt")
    body: str = Field(default="", description="Sanitized HTML body")
    author_id: int = Field(default=1, ge=1, description="Author of the content item")
    publish_timestamp: str = Field(default="", description="Local publish date, YYYY-MM-DD HH:MM:SS")
    external_guid: str = Field(default="", description="Feed item guid")
    status: PostStatus = Field(default=PostStatus.PUBLISHED)

    model_config = {"frozen": True}

    @field_validator('publish_timestamp')
    @classmethod
    def validate_publish_timestamp(cls, v):
        """Ensure the timestamp is empty or matches the storage format."""
        if v:
            datetime.strptime(v, DATE_FORMAT)
        return v

    def __str__(self) -> str:
        return f"NormalizedRecord({self.title[:50]}@{self.publish_timestamp})"


class IngestionConfig(BaseModel):
    """Import options, read once per run and never mutated."""
    interval_hours: float = Field(default=1.0, gt=0)
    default_author_id: Optional[int] = Field(default=None)
    post_status: Optional[PostStatus] = Field(default=None)
    default_media_id: Optional[int] = Field(default=None)
    timezone: str = Field(default="UTC")

    model_config = {"frozen": True}

    @classmethod
    def from_options(
        cls,
        options: Dict[str, Any],
        default_interval_hours: float = 1.0,
        timezone: str = "UTC",
    ) -> "IngestionConfig":
        """Build config from the options bag, ignoring unusable values."""
        return cls(
            interval_hours=_positive_float(options.get("interval")) or default_interval_hours,
            default_author_id=_positive_int(options.get("author")),
            post_status=PostStatus.from_option(options.get("post_status")),
            default_media_id=_positive_int(options.get("default_media")),
            timezone=str(options.get("timezone") or timezone),
        )

    @property
    def interval_seconds(self) -> float:
        return self.interval_hours * 3600


def _positive_float(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


class PersistedContentItem(BaseModel):
    """A stored content item with its taxonomy and featured media."""
    id: int = Field(..., ge=1, description="Store assigned identifier")
    title: str
    excerpt: str = ""
    body: str
    author_id: int
    publish_timestamp: str
    external_guid: str = ""
    status: PostStatus = PostStatus.PUBLISHED
    featured_media_id: Optional[int] = None
    terms: Dict[str, List[str]] = Field(default_factory=dict)
    created_at: Optional[datetime] = Field(default_factory=lambda: datetime.now(timezone.utc))

    def terms_for(self, taxonomy: str) -> List[str]:
        return self.terms.get(taxonomy, [])

    def __str__(self) -> str:
        return f"PersistedContentItem({self.id}:{self.title[:50]})"


class ScheduleState(BaseModel):
    """The single timer entry owned by the import scheduler."""
    job_name: str
    next_run_at: Optional[datetime] = None
    interval_seconds: float = Field(default=3600.0, gt=0)
    updated_at: Optional[datetime] = None

    def is_due(self, now: datetime) -> bool:
        return self.next_run_at is not None and self.next_run_at <= now

    def __str__(self) -> str:
        if self.next_run_at is None:
            return f"ScheduleState({self.job_name}: unscheduled)"
        return f"ScheduleState({self.job_name}: next run {self.next_run_at.isoformat()})"


@dataclass
class ImportRunResult:
    """Statistics of one pipeline run."""
    success: bool = False
    items_seen: int = 0
    items_inserted: int = 0
    items_rejected: int = 0
    items_failed: int = 0
    inserted_ids: List[int] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0
    rescheduled_at: Optional[datetime] = None
    skipped_locked: bool = False

    @property
    def insertion_rate(self) -> float:
        """Percentage of seen items that were inserted."""
        if self.items_seen == 0:
            return 0.0
        return (self.items_inserted / self.items_seen) * 100
