"""
Detailed error context logging for target-run failures.

- Creates a CrawlError record for every failed target run
- Maps fetch error codes and pipeline exceptions to ErrorType
- Includes stack trace for exceptions

Usage:
    from pagewatch.monitoring import log_error_with_context

    log_error_with_context(error=exception, target=target, stage="persist")
"""

import logging
import traceback
from typing import Any, Dict, Optional

from django.db import DatabaseError
from django.utils import timezone

from pagewatch.exceptions import ClassificationError, FetchError, FetchErrorCode, PersistenceError
from pagewatch.models import CrawlError, ErrorType

from .sentry_integration import capture_pipeline_error

logger = logging.getLogger(__name__)

FETCH_ERROR_TYPES = {
    FetchErrorCode.TIMEOUT: ErrorType.TIMEOUT,
    FetchErrorCode.BLOCKED: ErrorType.BLOCKED,
    FetchErrorCode.EMPTY: ErrorType.EMPTY,
    FetchErrorCode.UNKNOWN: ErrorType.UNKNOWN,
}


def create_crawl_error_record(
    target,
    url: str,
    error_type: str,
    message: str,
    strategy: Optional[str] = None,
    stack_trace: Optional[str] = None,
) -> Optional[CrawlError]:
    """
    Create a CrawlError record in the database.

    Args:
        target: Target instance (may be None)
        url: URL that caused the error
        error_type: ErrorType value
        message: Error message
        strategy: Fetch strategy used, if any
        stack_trace: Full stack trace if available

    Returns:
        CrawlError instance, or None if the record could not be written
    """
    if error_type not in ErrorType.values:
        error_type = ErrorType.UNKNOWN

    try:
        error_record = CrawlError.objects.create(
            target=target,
            url=url,
            error_type=error_type,
            message=message[:2000],
            strategy=strategy or "",
            stack_trace=stack_trace or "",
            timestamp=timezone.now(),
        )
        logger.debug(f"Created CrawlError record {error_record.id} for {url}: {error_type}")
        return error_record

    except DatabaseError as e:
        logger.error(f"Failed to create CrawlError record: {e}")
        return None


def classify_error(error: Exception) -> str:
    """Map an exception onto an ErrorType value."""
    if isinstance(error, FetchError):
        return FETCH_ERROR_TYPES.get(error.code, ErrorType.UNKNOWN)
    if isinstance(error, ClassificationError):
        return ErrorType.CLASSIFICATION
    if isinstance(error, (PersistenceError, DatabaseError)):
        return ErrorType.PERSISTENCE
    return ErrorType.UNKNOWN


def log_error_with_context(
    error: Exception,
    target=None,
    stage: Optional[str] = None,
    strategy: Optional[str] = None,
    extra_context: Optional[Dict[str, Any]] = None,
) -> Optional[CrawlError]:
    """
    Log an error to the database and Sentry.

    Args:
        error: The exception that occurred
        target: Target being processed
        stage: Pipeline stage where it happened
        strategy: Fetch strategy in use, if any
        extra_context: Additional context for Sentry

    Returns:
        CrawlError instance if a database record was created
    """
    error_type = classify_error(error)
    stack_trace = "".join(
        traceback.format_exception(type(error), error, error.__traceback__)
    )

    error_record = None
    if target is not None:
        error_record = create_crawl_error_record(
            target=target,
            url=target.url,
            error_type=error_type,
            message=str(error),
            strategy=strategy,
            stack_trace=stack_trace,
        )

    capture_pipeline_error(
        error=error,
        target=target,
        stage=stage,
        strategy=strategy,
        extra_context={"error_type": error_type, **(extra_context or {})},
    )

    return error_record
