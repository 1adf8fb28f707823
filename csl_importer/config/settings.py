"""
CSL Importer Configuration System
=================================

Environment driven settings with Pydantic models. Environment variables
(``CSL_IMPORTER_`` prefix, ``__`` for nesting) override Field defaults.

Per-site import options (interval, author, post status, default media) are
not settings: they live in the options bag of the content store and are read
once per run, see ``csl_importer.storage.options_repository``.
"""

from pathlib import Path
from typing import Optional
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from ..utils.exceptions import ConfigurationError, ErrorCode

DEFAULT_FEED_URL = "https://cstarleague.com/feed.rss"


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class FeedSettings(BaseModel):
    """Feed source configuration."""
    url: str = Field(default=DEFAULT_FEED_URL, description="RSS feed to import")
    user_agent: str = Field(
        default="CSLFeedImporter/1.0",
        description="User-Agent header sent with feed requests",
    )


class LimitsSettings(BaseModel):
    """Timeouts and concurrency limits."""
    request_timeout: int = Field(default=30, ge=1, le=300, description="Feed request timeout in seconds")
    max_workers: int = Field(default=4, ge=1, le=32, description="Items imported concurrently per run")


class ScheduleSettings(BaseModel):
    """Import schedule configuration."""
    job_name: str = Field(default="csl_feed_import", min_length=1, description="Name of the schedule entry")
    default_interval_hours: float = Field(default=1.0, gt=0, description="Interval used when no interval option is stored")
    retry_backoff_minutes: int = Field(default=20, ge=1, le=1440, description="Delay before retrying a failed run")
    poll_seconds: int = Field(default=60, ge=1, le=3600, description="How often the service loop checks the schedule")
    lock_dir: Optional[str] = Field(default=None, description="Directory for the run lock file")


class SiteSettings(BaseModel):
    """Content site configuration."""
    timezone: str = Field(default="UTC", description="Timezone used for publish dates")
    default_author_id: int = Field(default=1, ge=1, description="Author used when no author option is stored")

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v):
        """Ensure the timezone is a known IANA name."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v


class DatabaseSettings(BaseModel):
    """Database configuration."""
    path: str = Field(default="data/csl_importer.db", description="SQLite database file path")
    pool_size: int = Field(default=5, ge=1, le=20, description="Connection pool size")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default="logs/csl_importer.log", description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging")
    console_logging: bool = Field(default=True, description="Enable console logging")


class ImporterSettings(BaseSettings):
    """Main application settings."""

    feed: FeedSettings = Field(default_factory=FeedSettings)
    limits: LimitsSettings = Field(default_factory=LimitsSettings)
    schedule: ScheduleSettings = Field(default_factory=ScheduleSettings)
    site: SiteSettings = Field(default_factory=SiteSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    app_name: str = Field(default="CSLFeedImporter", description="Application name")
    version: str = Field(default="0.1.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "env_prefix": "CSL_IMPORTER_",
    }

    def validate_configuration(self) -> None:
        """Validate complete configuration."""
        errors = []

        if not self.feed.url.lower().startswith(("http://", "https://")):
            errors.append(f"Feed URL must be http(s): {self.feed.url}")

        try:
            db_path = Path(self.database.path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except Exception as e:
            errors.append(f"Invalid database path: {e}")

        if self.logging.file_path:
            try:
                log_path = Path(self.logging.file_path)
                log_path.parent.mkdir(parents=True, exist_ok=True)
            except Exception as e:
                errors.append(f"Invalid log file path: {e}")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_INVALID
            )

    def get_effective_log_level(self) -> str:
        """Get effective log level considering debug mode."""
        if self.debug:
            return "DEBUG"
        return self.logging.level.value


def load_settings() -> ImporterSettings:
    """Load settings from environment variables and defaults.

    Returns:
        Loaded and validated settings

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        settings = ImporterSettings()
        settings.validate_configuration()
        return settings

    except Exception as e:
        if isinstance(e, ConfigurationError):
            raise
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID
        ) from e


_settings: Optional[ImporterSettings] = None


def get_settings(reload: bool = False) -> ImporterSettings:
    """Get global settings instance (singleton pattern).

    Args:
        reload: Force reload of settings

    Returns:
        Global settings instance
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings
