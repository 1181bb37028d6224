"""
Sentry error tracking for the page-watch pipeline.

- Breadcrumbs for each pipeline stage (target, URL, strategy)
- Filters sensitive data (cookies, API keys, tokens)
- Captures target-run exceptions and threshold alerts with context

Sentry itself is initialised in config/settings/base.py; with an empty DSN
every call here is a no-op.

Usage:
    from pagewatch.monitoring import capture_pipeline_error, add_pipeline_breadcrumb

    add_pipeline_breadcrumb("fetch", f"Fetching {url}", strategy="cheap")
    try:
        ...
    except PersistenceError as e:
        capture_pipeline_error(e, target=target, stage="persist")
"""

import logging
from typing import Any, Dict, Optional

import sentry_sdk

logger = logging.getLogger(__name__)

# Sensitive fields to filter from Sentry events
SENSITIVE_FIELDS = {
    "cookies",
    "cookie",
    "api_key",
    "apikey",
    "authorization",
    "password",
    "secret",
    "token",
}


def _filter_sensitive_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Replace values whose keys look sensitive.

    Args:
        data: Dictionary potentially containing sensitive data

    Returns:
        Copy with sensitive values replaced by "[Filtered]"
    """
    if not isinstance(data, dict):
        return data

    filtered = {}
    for key, value in data.items():
        key_lower = str(key).lower()

        if any(sensitive in key_lower for sensitive in SENSITIVE_FIELDS):
            filtered[key] = "[Filtered]"
        elif isinstance(value, dict):
            filtered[key] = _filter_sensitive_data(value)
        else:
            filtered[key] = value

    return filtered


def add_pipeline_breadcrumb(
    stage: str,
    message: str,
    level: str = "info",
    **data: Any,
) -> None:
    """
    Add a breadcrumb for one pipeline stage.

    Args:
        stage: Pipeline stage (eligibility, fetch, diff, persist, ...)
        message: Description of the operation
        level: Log level (info, warning, error)
        **data: Extra context, filtered for sensitive fields
    """
    try:
        sentry_sdk.add_breadcrumb(
            category=f"pagewatch.{stage}",
            message=message,
            level=level,
            data=_filter_sensitive_data(data),
        )
    except Exception as e:
        logger.warning(f"Failed to add Sentry breadcrumb: {e}")


def capture_pipeline_error(
    error: Exception,
    target=None,
    stage: Optional[str] = None,
    strategy: Optional[str] = None,
    extra_context: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Capture a target-run error to Sentry with full context.

    Args:
        error: The exception that occurred
        target: Target being processed (optional)
        stage: Pipeline stage where the error happened
        strategy: Fetch strategy in use, if any
        extra_context: Additional context (filtered for sensitive data)
    """
    try:
        with sentry_sdk.new_scope() as scope:
            scope.set_tag("pagewatch.stage", stage or "unknown")
            if strategy:
                scope.set_tag("pagewatch.strategy", strategy)

            if target is not None:
                scope.set_extra("target_id", str(target.id))
                scope.set_extra("target_url", target.url)
            if extra_context:
                scope.set_extra("pipeline_context", _filter_sensitive_data(extra_context))

            sentry_sdk.capture_exception(error)

    except Exception as e:
        logger.warning(f"Failed to capture exception to Sentry: {e}")


def capture_alert(
    message: str,
    level: str = "warning",
    alert_type: str = "threshold_breach",
    extra_data: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Capture an operational alert message to Sentry.

    Used for paused targets, global throttling and failed sweeps.

    Args:
        message: Alert message
        level: Severity level (warning, error)
        alert_type: Tag value grouping similar alerts
        extra_data: Additional alert data
    """
    try:
        with sentry_sdk.new_scope() as scope:
            scope.set_tag("alert.type", alert_type)
            if extra_data:
                scope.set_extra("alert_data", _filter_sensitive_data(extra_data))

            sentry_sdk.capture_message(message, level=level)

    except Exception as e:
        logger.warning(f"Failed to capture alert to Sentry: {e}")
