"""
CSL Importer Custom Exceptions
==============================

Exception hierarchy for the feed importer with error codes, context
information and a recoverable flag used by the scheduler and the logs.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration errors (C001-C099)
    CONFIG_INVALID = "C001"
    CONFIG_MISSING = "C002"

    # Database errors (D001-D099)
    DATABASE_CONNECTION = "D001"
    DATABASE_CONSTRAINT = "D003"
    DATABASE_TRANSACTION = "D004"
    DATABASE_ERROR = "D006"

    # Feed errors (F001-F099)
    FEED_INVALID_URL = "F001"
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"
    FEED_EMPTY_RESPONSE = "F005"
    FEED_HTTP_STATUS = "F006"

    # Ingestion errors (I001-I099)
    INSERT_FAILED = "I001"
    TAXONOMY_ATTACH_FAILED = "I002"
    MEDIA_ATTACH_FAILED = "I003"

    # Scheduling errors (S001-S099)
    SCHEDULE_ERROR = "S001"

    # Validation errors (V001-V099)
    VALIDATION_REQUIRED_FIELD = "V001"
    VALIDATION_INVALID_FORMAT = "V002"
    VALIDATION_OUT_OF_RANGE = "V003"

    # System errors
    SYSTEM_PERMISSION_DENIED = "X001"
    SYSTEM_MEMORY_ERROR = "X002"


class ImporterError(Exception):
    """Base exception for all importer errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ):
        """Initialize importer error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code
            context: Additional context information
            recoverable: Whether a later run may succeed
        """
        super().__init__(message)
        self.error_code = error_code
        self.context = context or {}
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        """String representation with error code."""
        if self.error_code:
            return f"[{self.error_code.value}] {super().__str__()}"
        return super().__str__()


def _merge_context(kwargs: Dict[str, Any], **values: Any) -> Dict[str, Any]:
    context = dict(kwargs.pop("context", None) or {})
    for key, value in values.items():
        if value is not None:
            context[key] = value
    return context


class ConfigurationError(ImporterError):
    """Configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        context = _merge_context(kwargs, config_key=config_key)
        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.CONFIG_INVALID),
            context=context,
            **kwargs,
        )


class DatabaseError(ImporterError):
    """Database-related errors."""

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        """Initialize database error.

        Args:
            message: Error message
            query: SQL query that caused the error
            **kwargs: Additional arguments for ImporterError
        """
        context = _merge_context(kwargs, query=query)
        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.DATABASE_CONNECTION),
            context=context,
            recoverable=kwargs.pop("recoverable", True),
            **kwargs,
        )


class FeedError(ImporterError):
    """Feed retrieval and parsing errors. Any FeedError aborts the run."""

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        """Initialize feed error.

        Args:
            message: Error message
            feed_url: Feed URL that caused the error
            **kwargs: Additional arguments for ImporterError
        """
        context = _merge_context(kwargs, feed_url=feed_url)
        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.FEED_NETWORK_ERROR),
            context=context,
            recoverable=kwargs.pop("recoverable", True),
            **kwargs,
        )


class FeedFetchError(FeedError):
    """Transport failure: timeout, connection error, bad status or empty body."""

    pass


class FeedParseError(FeedError):
    """The feed document is not well-formed or is not an RSS document."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", ErrorCode.FEED_PARSE_ERROR)
        super().__init__(message, **kwargs)


class IngestionError(ImporterError):
    """Errors raised while persisting a single feed item."""

    def __init__(
        self,
        message: str,
        item_guid: Optional[str] = None,
        post_id: Optional[int] = None,
        **kwargs,
    ):
        context = _merge_context(kwargs, item_guid=item_guid, post_id=post_id)
        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.INSERT_FAILED),
            context=context,
            recoverable=kwargs.pop("recoverable", True),
            **kwargs,
        )


class InsertError(IngestionError):
    """The content store rejected the write of a new content item."""

    pass


class TaxonomyAttachError(IngestionError):
    """Attaching taxonomy terms to a created content item failed."""

    def __init__(self, message: str, taxonomy: Optional[str] = None, **kwargs):
        kwargs["context"] = _merge_context(kwargs, taxonomy=taxonomy)
        kwargs.setdefault("error_code", ErrorCode.TAXONOMY_ATTACH_FAILED)
        super().__init__(message, **kwargs)


class MediaAttachError(IngestionError):
    """Setting the featured media of a created content item failed."""

    def __init__(self, message: str, media_id: Optional[int] = None, **kwargs):
        kwargs["context"] = _merge_context(kwargs, media_id=media_id)
        kwargs.setdefault("error_code", ErrorCode.MEDIA_ATTACH_FAILED)
        super().__init__(message, **kwargs)


class SchedulerError(ImporterError):
    """Schedule persistence errors."""

    def __init__(self, message: str, job_name: Optional[str] = None, **kwargs):
        context = _merge_context(kwargs, job_name=job_name)
        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.SCHEDULE_ERROR),
            context=context,
            recoverable=kwargs.pop("recoverable", True),
            **kwargs,
        )


class ValidationError(ImporterError):
    """Data validation errors."""

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        context = _merge_context(kwargs, field_name=field_name)
        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.VALIDATION_INVALID_FORMAT),
            context=context,
            recoverable=kwargs.pop("recoverable", False),
            **kwargs,
        )


# Exception handling utilities


def handle_exception(
    exception: Exception,
    logger,
    operation: str,
    context: Optional[Dict[str, Any]] = None,
) -> ImporterError:
    """Convert generic exceptions to importer exceptions with proper logging.

    Args:
        exception: Original exception
        logger: Logger instance for error logging
        operation: Operation that was being performed
        context: Additional context information

    Returns:
        Importer exception with proper categorization
    """
    context = context or {}
    context["operation"] = operation
    context["original_exception_type"] = type(exception).__name__

    if isinstance(exception, ImporterError):
        logger.error(f"Operation '{operation}' failed", extra=exception.to_dict())
        return exception

    elif isinstance(exception, (ConnectionError, TimeoutError)):
        error = ImporterError(
            message=f"Network error during {operation}: {str(exception)}",
            error_code=ErrorCode.FEED_NETWORK_ERROR,
            context=context,
            recoverable=True,
        )

    elif isinstance(exception, PermissionError):
        error = ImporterError(
            message=f"Permission denied during {operation}: {str(exception)}",
            error_code=ErrorCode.SYSTEM_PERMISSION_DENIED,
            context=context,
            recoverable=False,
        )

    elif isinstance(exception, FileNotFoundError):
        error = ConfigurationError(
            message=f"Required file not found during {operation}: {str(exception)}",
            error_code=ErrorCode.CONFIG_MISSING,
            context=context,
        )

    elif isinstance(exception, MemoryError):
        error = ImporterError(
            message=f"Memory exhausted during {operation}: {str(exception)}",
            error_code=ErrorCode.SYSTEM_MEMORY_ERROR,
            context=context,
            recoverable=True,
        )

    else:
        error = ImporterError(
            message=f"Unexpected error during {operation}: {str(exception)}",
            context=context,
            recoverable=True,
        )

    logger.error(f"Operation '{operation}' failed", extra=error.to_dict())
    return error
