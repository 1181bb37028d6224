"""
Exception taxonomy for the change-detection pipeline.

- FetchError: a backend could not return usable content (typed by code)
- ClassificationError: malformed snapshot input, fatal to one target's run
- PersistenceError: storage failure, aborts one target's run

Ineligibility and guardrail flags are never raised; they are returned as
structured results.
"""

from enum import Enum
from typing import Optional


class FetchErrorCode(str, Enum):
    """Failure categories reported by fetch backends."""

    TIMEOUT = "TIMEOUT"
    BLOCKED = "BLOCKED"
    EMPTY = "EMPTY"
    UNKNOWN = "UNKNOWN"


class PageWatchError(Exception):
    """Base error for pagewatch operations."""

    pass


class FetchError(PageWatchError):
    """Raised when a fetch backend fails to return usable content."""

    def __init__(
        self,
        code: FetchErrorCode,
        message: str,
        strategy: Optional[str] = None,
    ):
        super().__init__(message)
        self.code = FetchErrorCode(code)
        self.message = message
        self.strategy = strategy

    def __str__(self):
        return f"{self.code.value}: {self.message}"


class ClassificationError(PageWatchError):
    """Raised when diff or classifier input is malformed."""

    pass


class PersistenceError(PageWatchError):
    """Raised when a snapshot, alert or target update cannot be stored."""

    pass
