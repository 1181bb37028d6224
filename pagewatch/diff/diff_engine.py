"""
Block-level diff between two normalized snapshots.

Fingerprint equality short-circuits to "no change" before any text is
compared. Otherwise both texts are split into sentence blocks and the
removed/added blocks are paired up into changed segments.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)

# Combined length of removed + added text below which a diff is ignored
MIN_DIFF_LENGTH = 10

# Blocks at or below this length carry no signal
MIN_BLOCK_LENGTH = 5

BLOCK_SPLIT_PATTERN = re.compile(r"[.!?]\s+")


@dataclass
class ChangedSegment:
    """A removed block paired with the block that replaced it."""

    old_text: str = ""
    new_text: str = ""

    @property
    def kind(self) -> str:
        if self.old_text and self.new_text:
            return "changed"
        if self.new_text:
            return "added"
        return "removed"


@dataclass
class DiffResult:
    """Transient delta between two snapshots."""

    has_changes: bool
    segments: List[ChangedSegment] = field(default_factory=list)
    fingerprint_changed: bool = False

    @property
    def added(self) -> List[str]:
        return [s.new_text for s in self.segments if s.new_text]

    @property
    def removed(self) -> List[str]:
        return [s.old_text for s in self.segments if s.old_text]


def split_into_blocks(text: str) -> List[str]:
    """Split text on sentence punctuation, dropping trivially short blocks."""
    blocks = (block.strip() for block in BLOCK_SPLIT_PATTERN.split(text))
    return [block for block in blocks if len(block) > MIN_BLOCK_LENGTH]


def pair_changed_blocks(removed: List[str], added: List[str]) -> List[ChangedSegment]:
    """Pair removed and added blocks positionally."""
    segments = []
    for index in range(max(len(removed), len(added))):
        old_text = removed[index] if index < len(removed) else ""
        new_text = added[index] if index < len(added) else ""
        if old_text or new_text:
            segments.append(ChangedSegment(old_text=old_text, new_text=new_text))
    return segments


def compute_diff(
    old_text: str,
    new_text: str,
    old_fingerprint: Optional[str] = None,
    new_fingerprint: Optional[str] = None,
) -> DiffResult:
    """
    Compare two normalized texts.

    Args:
        old_text: Previous snapshot's normalized text
        new_text: Current normalized text
        old_fingerprint: Previous snapshot's fingerprint
        new_fingerprint: Current fingerprint

    Returns:
        DiffResult; has_changes is False when fingerprints match, when the
        texts are identical, or when the changed text is too small to matter.
    """
    if old_fingerprint and new_fingerprint:
        if old_fingerprint == new_fingerprint:
            return DiffResult(has_changes=False)
        fingerprint_changed = True
    else:
        fingerprint_changed = old_text != new_text

    if old_text == new_text:
        return DiffResult(has_changes=False, fingerprint_changed=fingerprint_changed)

    old_blocks = split_into_blocks(old_text)
    new_blocks = split_into_blocks(new_text)
    old_set = set(old_blocks)
    new_set = set(new_blocks)

    removed = [block for block in old_blocks if block not in new_set]
    added = [block for block in new_blocks if block not in old_set]

    total_change_length = len(" ".join(removed + added))
    if total_change_length < MIN_DIFF_LENGTH:
        logger.debug(
            "Diff below minimum length (%d chars), treating as unchanged",
            total_change_length,
        )
        return DiffResult(has_changes=False, fingerprint_changed=fingerprint_changed)

    segments = pair_changed_blocks(removed, added)

    return DiffResult(
        has_changes=bool(segments),
        segments=segments,
        fingerprint_changed=fingerprint_changed,
    )


def _truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def summarize_diff(diff: DiffResult, max_segments: int = 3) -> str:
    """Render a short human-readable description of a diff."""
    if not diff.has_changes:
        return "No changes detected"

    lines = []
    for segment in diff.segments[:max_segments]:
        if segment.kind == "changed":
            lines.append(
                f'Changed: "{_truncate(segment.old_text, 50)}" → "{_truncate(segment.new_text, 50)}"'
            )
        elif segment.kind == "added":
            lines.append(f'Added: "{_truncate(segment.new_text, 80)}"')
        else:
            lines.append(f'Removed: "{_truncate(segment.old_text, 80)}"')

    if len(diff.segments) > max_segments:
        lines.append(f"...and {len(diff.segments) - max_segments} more changes")

    return "\n".join(lines)
