"""
Meaningfulness classifier for snapshot diffs.

Separates decision-relevant change (pricing, plans, calls to action,
features, positioning) from cosmetic churn, and explains its verdict with
the concrete list of changed items that becomes the alert summary.

Severity:
- pricing category present: high
- any other category: medium
- fingerprint changed, no category: minor (alerting on it is a caller policy)
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from pagewatch.exceptions import ClassificationError

from .diff_engine import DiffResult

logger = logging.getLogger(__name__)

SEVERITY_HIGH = "high"
SEVERITY_MEDIUM = "medium"
SEVERITY_MINOR = "minor"

# Changed text longer than this with no category is reported as substantial
SUBSTANTIAL_CHANGE_LENGTH = 100

FINGERPRINT_PATTERN = re.compile(r"^[0-9a-f]{64}$")

PRICING_PATTERNS = [
    re.compile(r"\$\s?\d+"),
    re.compile(r"€\s?\d+"),
    re.compile(r"£\s?\d+"),
    re.compile(r"₹\s?\d+"),
    re.compile(r"\d+\s*(?:/|per)\s*(?:month|year|mo|yr)\b", re.IGNORECASE),
    re.compile(r"free\s*trial", re.IGNORECASE),
    re.compile(r"\d+%\s*(?:off|discount)", re.IGNORECASE),
    re.compile(r"\bpricing\b", re.IGNORECASE),
    re.compile(r"\bsubscription\b", re.IGNORECASE),
    re.compile(r"billed\s*(?:monthly|annually|yearly)", re.IGNORECASE),
]

PLAN_PATTERNS = [
    re.compile(
        r"\b(?:basic|starter|pro|premium|enterprise|team|business|free|plus)\s+(?:plan|tier)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(?:plan|tier)s?\b", re.IGNORECASE),
    re.compile(r"\bupgrade\b", re.IGNORECASE),
    re.compile(r"\bdowngrade\b", re.IGNORECASE),
]

CTA_PATTERNS = [
    re.compile(r"get\s+started", re.IGNORECASE),
    re.compile(r"start\s+free", re.IGNORECASE),
    re.compile(r"try\s+(?:it\s+)?for\s+free", re.IGNORECASE),
    re.compile(r"contact\s+sales", re.IGNORECASE),
    re.compile(r"talk\s+to\s+sales", re.IGNORECASE),
    re.compile(r"(?:book|request)\s+a?\s*demo", re.IGNORECASE),
    re.compile(r"sign\s+up", re.IGNORECASE),
    re.compile(r"buy\s+now", re.IGNORECASE),
    re.compile(r"\bsubscribe\b", re.IGNORECASE),
]

FEATURE_PATTERNS = [
    re.compile(r"\b(?:features?|includes?|included|unlimited|limited|up to \d+)\b", re.IGNORECASE),
    re.compile(r"[✓✗✔✕✘✅❌]"),
    re.compile(r"\d+\s*(?:gb|tb|mb|users?|seats?|projects?|integrations?)\b", re.IGNORECASE),
]

POSITIONING_PATTERNS = [
    re.compile(r"\bthe\s+#?\d+\b", re.IGNORECASE),
    re.compile(r"\b(?:best|leading|top|fastest|easiest|simplest|most)\b", re.IGNORECASE),
    re.compile(r"\b(?:introducing|announcing|new|launch(?:es|ed|ing)?)\b", re.IGNORECASE),
]

NOISE_PATTERNS = [
    re.compile(r"\b\d{4}\b"),
    re.compile(r"cookies?", re.IGNORECASE),
    re.compile(r"privacy", re.IGNORECASE),
    re.compile(r"\bterms\b", re.IGNORECASE),
    re.compile(r"\ball rights reserved\b", re.IGNORECASE),
]

# Checked in priority order; the first match names the verdict
CATEGORY_PATTERNS = [
    ("pricing", PRICING_PATTERNS),
    ("plan", PLAN_PATTERNS),
    ("cta", CTA_PATTERNS),
    ("feature", FEATURE_PATTERNS),
    ("positioning", POSITIONING_PATTERNS),
]

CATEGORY_REASONS = {
    "pricing": "Pricing information changed",
    "plan": "Plan or tier structure changed",
    "cta": "Call-to-action language changed",
    "feature": "Feature or capability description changed",
    "positioning": "Headline or positioning language changed",
}

PLAN_NAMES = (
    "free|starter|basic|pro|professional|premium|plus|team|teams|"
    "business|growth|scale|startup|enterprise"
)

# "pro plan: $49/mo", "enterprise - €99", "pro $49"
PRICE_POINT_PATTERN = re.compile(
    rf"\b({PLAN_NAMES})\b(?:\s+(?:plan|tier))?[^$€£₹\d.!?]{{0,20}}"
    r"([$€£₹]\s?\d[\d,]*(?:\.\d{1,2})?)",
    re.IGNORECASE,
)
PRICE_PATTERN = re.compile(r"[$€£₹]\s?\d[\d,]*(?:\.\d{1,2})?")


@dataclass
class ClassificationResult:
    """Verdict of the meaningfulness classifier."""

    is_meaningful: bool
    severity: Optional[str] = None
    reason_codes: List[str] = field(default_factory=list)
    changed_items: List[str] = field(default_factory=list)
    reason: str = ""

    @property
    def summary(self) -> str:
        """Human-facing summary line for alerts."""
        if self.changed_items:
            return "; ".join(self.changed_items)
        return self.reason


def _contains(text: str, patterns) -> bool:
    return any(pattern.search(text) for pattern in patterns)


def is_noise_only(text: str) -> bool:
    """Check whether changed text only touches dates, legal or cookie copy."""
    return _contains(text, NOISE_PATTERNS) and not _contains(
        text, PRICING_PATTERNS + PLAN_PATTERNS + CTA_PATTERNS
    )


def extract_price_points(text: str) -> Dict[str, str]:
    """Map plan names to the first price that follows them."""
    points = {}
    for match in PRICE_POINT_PATTERN.finditer(text):
        plan = match.group(1).lower()
        price = match.group(2).replace(" ", "")
        points.setdefault(plan, price)
    return points


def _truncate(text: str, max_length: int = 60) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def _pricing_items(diff: DiffResult) -> List[str]:
    old_points = extract_price_points(" ".join(diff.removed))
    new_points = extract_price_points(" ".join(diff.added))

    items = []
    for plan, new_price in new_points.items():
        label = plan.title()
        old_price = old_points.get(plan)
        if old_price is None:
            items.append(f"Plan added: {label}:{new_price}")
        elif old_price != new_price:
            items.append(f"Pricing updated: {label}:{old_price}→{new_price}")
    for plan in old_points:
        if plan not in new_points:
            items.append(f"Plan removed: {plan.title()}")

    if items:
        return items

    old_prices = PRICE_PATTERN.findall(" ".join(diff.removed))
    new_prices = PRICE_PATTERN.findall(" ".join(diff.added))
    if old_prices != new_prices and (old_prices or new_prices):
        before = ", ".join(p.replace(" ", "") for p in old_prices) or "none"
        after = ", ".join(p.replace(" ", "") for p in new_prices) or "none"
        return [f"Pricing updated: {before}→{after}"]

    return [CATEGORY_REASONS["pricing"]]


def _matching_blocks(blocks: List[str], patterns) -> List[str]:
    return [block for block in blocks if _contains(block, patterns)]


def build_changed_items(diff: DiffResult, categories: List[str]) -> List[str]:
    """Describe each detected category with the concrete changed content."""
    items = []

    if "pricing" in categories:
        items.extend(_pricing_items(diff))

    if "plan" in categories and not any(i.startswith("Plan ") for i in items):
        blocks = _matching_blocks(diff.added, PLAN_PATTERNS) or _matching_blocks(
            diff.removed, PLAN_PATTERNS
        )
        if blocks:
            items.append(f'Plan structure changed: "{_truncate(blocks[0])}"')

    if "cta" in categories:
        blocks = _matching_blocks(diff.added, CTA_PATTERNS)
        if blocks:
            items.append(f'Call-to-action updated: "{_truncate(blocks[0])}"')
        else:
            items.append(CATEGORY_REASONS["cta"])

    if "feature" in categories:
        added = _matching_blocks(diff.added, FEATURE_PATTERNS)
        removed = _matching_blocks(diff.removed, FEATURE_PATTERNS)
        if added:
            items.append("New features: " + ", ".join(_truncate(b) for b in added[:3]))
        if removed and not added:
            items.append("Features removed: " + ", ".join(_truncate(b) for b in removed[:3]))

    if "positioning" in categories:
        items.append("Value proposition updated")

    return items


def classify(diff: DiffResult) -> ClassificationResult:
    """
    Classify a diff as meaningful or cosmetic.

    Each category contributes independently to reason_codes; pricing
    escalates severity to high, any other category yields medium.

    Args:
        diff: Output of compute_diff

    Returns:
        ClassificationResult with verdict, severity, reason codes and the
        list of concrete changed items

    Raises:
        ClassificationError: If the diff is malformed
    """
    if not isinstance(diff, DiffResult):
        raise ClassificationError(f"Expected DiffResult, got {type(diff).__name__}")

    for segment in diff.segments:
        if not isinstance(segment.old_text, str) or not isinstance(segment.new_text, str):
            raise ClassificationError("Diff segment text must be a string")

    if not diff.has_changes or not diff.segments:
        if diff.fingerprint_changed:
            return ClassificationResult(
                is_meaningful=False,
                severity=SEVERITY_MINOR,
                reason_codes=["minor_change"],
                reason="Changes appear minor (grammar, formatting, or small copy edits)",
            )
        return ClassificationResult(is_meaningful=False, reason="No changes detected")

    changed_text = " ".join(f"{s.old_text} {s.new_text}" for s in diff.segments)

    if is_noise_only(changed_text):
        return ClassificationResult(
            is_meaningful=False,
            severity=SEVERITY_MINOR,
            reason_codes=["noise_only"],
            reason="Changes appear to be footer/legal/date updates only",
        )

    categories = [
        name for name, patterns in CATEGORY_PATTERNS if _contains(changed_text, patterns)
    ]

    if not categories:
        substantial = len(changed_text) > SUBSTANTIAL_CHANGE_LENGTH
        return ClassificationResult(
            is_meaningful=False,
            severity=SEVERITY_MINOR,
            reason_codes=["substantial_change" if substantial else "minor_change"],
            reason=(
                "Substantial content change detected"
                if substantial
                else "Changes appear minor (grammar, formatting, or small copy edits)"
            ),
        )

    severity = SEVERITY_HIGH if "pricing" in categories else SEVERITY_MEDIUM
    items = build_changed_items(diff, categories)

    logger.debug(
        "Classified diff as meaningful: categories=%s severity=%s", categories, severity
    )

    return ClassificationResult(
        is_meaningful=True,
        severity=severity,
        reason_codes=categories,
        changed_items=items,
        reason=CATEGORY_REASONS[categories[0]],
    )


def validate_snapshot_input(normalized_text, fingerprint_value) -> None:
    """
    Reject snapshot data that cannot be diffed.

    Raises:
        ClassificationError: If the text is not a string or the fingerprint
            is not a SHA-256 hex digest
    """
    if not isinstance(normalized_text, str):
        raise ClassificationError(
            f"Snapshot text must be a string, got {type(normalized_text).__name__}"
        )
    if not isinstance(fingerprint_value, str) or not FINGERPRINT_PATTERN.match(fingerprint_value):
        raise ClassificationError(f"Malformed snapshot fingerprint: {fingerprint_value!r}")
