"""
CSL Importer Input Validators
=============================

Validation for the feed URL and for values written to the options bag.
"""

from urllib.parse import urlparse, urlunparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .exceptions import ValidationError, ErrorCode
from ..database.models import PostStatus

OPTION_NAMES = ("interval", "author", "post_status", "default_media", "timezone")


class URLValidator:
    """URL validation and normalization."""

    ALLOWED_SCHEMES = {'http', 'https'}

    @classmethod
    def validate_feed_url(cls, url: str) -> str:
        """Validate and normalize the feed URL.

        Args:
            url: URL to validate

        Returns:
            Normalized URL

        Raises:
            ValidationError: If URL is invalid
        """
        if not url or not isinstance(url, str):
            raise ValidationError(
                "URL is required and must be a string",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name="url"
            )

        parsed = urlparse(url.strip())

        if parsed.scheme.lower() not in cls.ALLOWED_SCHEMES:
            raise ValidationError(
                f"URL scheme must be {' or '.join(sorted(cls.ALLOWED_SCHEMES))}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url"
            )

        if not parsed.netloc:
            raise ValidationError(
                "URL must include a hostname",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url"
            )

        return urlunparse(parsed._replace(
            scheme=parsed.scheme.lower(),
            netloc=parsed.netloc.lower(),
            path=parsed.path or '/',
            fragment=''
        ))


def validate_url(url: str) -> bool:
    """Return True if the URL is an acceptable feed URL."""
    try:
        URLValidator.validate_feed_url(url)
        return True
    except ValidationError:
        return False


def validate_option_value(name: str, value: str) -> str:
    """Validate a value before it is written to the options bag.

    Args:
        name: Option name, one of OPTION_NAMES
        value: Raw value as entered

    Returns:
        Normalized value to store

    Raises:
        ValidationError: If the option is unknown or the value is unusable
    """
    if name not in OPTION_NAMES:
        raise ValidationError(
            f"Unknown option '{name}', expected one of {', '.join(OPTION_NAMES)}",
            field_name=name,
        )

    value = (value or "").strip()
    if not value:
        raise ValidationError(
            "Option value cannot be empty",
            error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
            field_name=name,
        )

    if name == "interval":
        try:
            hours = float(value)
        except ValueError:
            raise ValidationError("Interval must be a number of hours", field_name=name)
        if hours <= 0:
            raise ValidationError(
                "Interval must be greater than zero",
                error_code=ErrorCode.VALIDATION_OUT_OF_RANGE,
                field_name=name,
            )
        return value

    if name in ("author", "default_media"):
        if not value.isdigit() or int(value) <= 0:
            raise ValidationError(
                f"{name} must be a positive integer id",
                error_code=ErrorCode.VALIDATION_OUT_OF_RANGE,
                field_name=name,
            )
        return str(int(value))

    if name == "post_status":
        status = PostStatus.from_option(value)
        if status is None:
            known = ", ".join(s.value for s in PostStatus)
            raise ValidationError(f"Unknown post status '{value}', expected one of {known}", field_name=name)
        return status.value

    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown timezone '{value}'", field_name=name)
    return value
