"""
Snapshot normalization, diffing and meaningfulness classification.
"""

from .normalize import (
    NormalizedSnapshot,
    create_normalized_snapshot,
    fingerprint,
    normalize_text,
)
from .diff_engine import ChangedSegment, DiffResult, compute_diff, summarize_diff
from .classifier import ClassificationResult, classify, validate_snapshot_input

__all__ = [
    "NormalizedSnapshot",
    "create_normalized_snapshot",
    "fingerprint",
    "normalize_text",
    "ChangedSegment",
    "DiffResult",
    "compute_diff",
    "summarize_diff",
    "ClassificationResult",
    "classify",
    "validate_snapshot_input",
]
