"""
Page text normalization and fingerprinting.

Canonicalizes raw page text so that unrelated churn (dates, footers,
cookie banners, testimonials) is invisible to snapshot comparison.

Normalization Rules (applied in order):
1. Lowercase transformation
2. Strip low-signal sections (testimonials, FAQ, footer, social proof)
3. Strip boilerplate (legal, cookies, newsletter, dates, badges, social links)
4. Strip URLs and email addresses
5. Collapse whitespace
6. Standardize quote and dash glyphs
7. Truncate to the maximum length, preferring a sentence boundary

Steps 2-7 repeat until the text no longer changes.
"""

import hashlib
import re
from dataclasses import dataclass

from django.conf import settings

DEFAULT_MAX_LENGTH = 4000

# Fraction of the budget after which a sentence boundary is preferred
SENTENCE_BOUNDARY_WINDOW = 0.8

# A section marker swallows the rest of its sentence
LOW_SIGNAL_SECTION_PATTERNS = [
    re.compile(r"\btestimonials?\b[^.!?]*[.!?]?"),
    re.compile(r"\bwhat\s+(?:our\s+)?(?:customers|clients|users)\s+(?:say|are\s+saying)\b[^.!?]*[.!?]?"),
    re.compile(r"\b(?:faqs?|frequently\s+asked\s+questions)\b[^.!?]*[.!?]?"),
    re.compile(r"\bfooter\b[^.!?]*[.!?]?"),
    re.compile(r"\b(?:trusted\s+by|loved\s+by|used\s+by)\s+(?:over\s+|more\s+than\s+)?[\d,]+\+?[^.!?]*[.!?]?"),
    re.compile(r"\b(?:rated|rating)\s+[\d.]+\s*(?:/\s*5|out\s+of\s+5|stars?)[^.!?]*[.!?]?"),
]

BOILERPLATE_PATTERNS = [
    # Copyright notices
    re.compile(r"(?:©|\(c\)|copyright)\s*(?:©\s*)?\d{4}(?:\s*[-‐‑‒–—]\s*\d{4})?"),
    re.compile(r"\ball\s+rights\s+reserved\b"),
    # Legal policy mentions
    re.compile(r"\bprivacy\s+policy\b"),
    re.compile(r"\bterms\s+of\s+(?:service|use)\b"),
    re.compile(r"\bterms\s+(?:and|&)\s+conditions\b"),
    re.compile(r"\bcookie\s+(?:policy|settings|preferences)\b"),
    # Cookie consent prompts
    re.compile(r"\bwe\s+use\s+cookies\b"),
    re.compile(r"\baccept\s+(?:all\s+)?cookies\b"),
    # Newsletter CTAs
    re.compile(r"\bsubscribe\s+to\s+our\s+newsletter\b"),
    re.compile(r"\bsign\s+up\s+for\s+(?:our\s+newsletter|updates)\b"),
    re.compile(r"\bfollow\s+us\s+on\b"),
    re.compile(r"\bconnect\s+with\s+us\b"),
    # Calendar dates: 12/31/2024, 2024-12-31
    re.compile(r"\b\d{4}[/.\-‐‑‒–—]\d{1,2}[/.\-‐‑‒–—]\d{1,2}\b"),
    re.compile(r"\b\d{1,2}[/.\-‐‑‒–—]\d{1,2}[/.\-‐‑‒–—]\d{2,4}\b"),
    # Month-name dates: January 5, 2024 / 5 jan 2024
    re.compile(
        r"\b(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?\s+\d{1,2}(?:st|nd|rd|th)?,?\s*\d{4}\b"
    ),
    re.compile(
        r"\b\d{1,2}(?:st|nd|rd|th)?\s+(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?,?\s*\d{4}\b"
    ),
    # Relative times
    re.compile(r"\b\d+\s*(?:seconds?|minutes?|mins?|hours?|hrs?|days?|weeks?|months?|years?)\s+ago\b"),
    re.compile(r"\blast\s+updated\b(?:\s*(?:on|at))?:?"),
    # Funding badges
    re.compile(r"\b(?:backed|funded)\s+by\b[^.!?]*[.!?]?"),
    # Security certification badges
    re.compile(r"\bsoc\s*2(?:\s+type\s+(?:ii|i|2|1))?(?:\s+(?:compliant|certified))?\b"),
    re.compile(r"\biso\s*27001(?:\s+certified)?\b"),
    re.compile(r"\b(?:gdpr|hipaa|ccpa)(?:\s+(?:compliant|ready))?\b"),
    # Social media markdown images and links
    re.compile(r"!\[[^\]]*\]\([^)]*\)"),
    re.compile(
        r"\[[^\]]*\]\((?:https?://)?(?:www\.)?"
        r"(?:twitter|x|facebook|linkedin|instagram|youtube|github|tiktok|discord)\.(?:com|gg)[^)]*\)"
    ),
]

URL_PATTERN = re.compile(r"(?:https?://|www\.)\S+")
EMAIL_PATTERN = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
WHITESPACE_PATTERN = re.compile(r"\s+")
DOUBLE_QUOTE_PATTERN = re.compile(r"[“”„‟″«»]")
SINGLE_QUOTE_PATTERN = re.compile(r"[‘’‚‛′`]")
DASH_PATTERN = re.compile(r"[‐‑‒–—―−]")


@dataclass(frozen=True)
class NormalizedSnapshot:
    """Normalized page text paired with its fingerprint."""

    normalized_text: str
    fingerprint: str

    def __iter__(self):
        return iter((self.normalized_text, self.fingerprint))


def get_max_length() -> int:
    """Get the normalized text length budget from settings."""
    return getattr(settings, "PAGEWATCH_MAX_NORMALIZED_LENGTH", DEFAULT_MAX_LENGTH)


def truncate_text(text: str, max_length: int) -> str:
    """
    Hard-truncate text, preferring the last sentence boundary.

    The cut lands after the last ". " found in the final 20% of the
    budget; without one, the text is cut at the raw character limit.
    """
    if len(text) <= max_length:
        return text

    cut = text[:max_length]
    boundary = cut.rfind(". ")
    if boundary >= int(max_length * SENTENCE_BOUNDARY_WINDOW):
        return cut[: boundary + 1]

    return cut.rstrip()


def _strip_noise(text: str) -> str:
    """Apply steps 2-6 once."""
    # 2. Strip low-signal sections
    for pattern in LOW_SIGNAL_SECTION_PATTERNS:
        text = pattern.sub(" ", text)

    # 3. Strip boilerplate
    for pattern in BOILERPLATE_PATTERNS:
        text = pattern.sub(" ", text)

    # 4. Strip URLs and email addresses
    text = URL_PATTERN.sub(" ", text)
    text = EMAIL_PATTERN.sub(" ", text)

    # 5. Collapse whitespace
    text = WHITESPACE_PATTERN.sub(" ", text).strip()

    # 6. Standardize quotes and dashes
    text = DOUBLE_QUOTE_PATTERN.sub('"', text)
    text = SINGLE_QUOTE_PATTERN.sub("'", text)
    return DASH_PATTERN.sub("-", text)


def normalize_text(raw_text: str, max_length: int = None) -> str:
    """
    Canonicalize raw page text for comparison.

    Steps 2-7 repeat until the text stops changing: removing one phrase and
    collapsing the gap can join its neighbours into another match
    ("privacy terms of service policy"). A pass either shortens the text or
    replaces glyphs that never reappear, so the loop ends on a fixed point
    and normalize_text(normalize_text(x)) == normalize_text(x).

    Args:
        raw_text: Extracted page text (markdown-like or plain)
        max_length: Optional override of the length budget

    Returns:
        The normalized text

    Example:
        >>> normalize_text("Pro Plan  $49/mo. © 2024 Acme. All rights reserved.")
        'pro plan $49/mo. acme. .'
    """
    if not raw_text:
        return ""

    budget = max_length or get_max_length()

    # 1. Lowercase transformation
    text = raw_text.lower()

    while True:
        # 7. Truncate
        cleaned = truncate_text(_strip_noise(text), budget)
        if cleaned == text:
            return cleaned
        text = cleaned


def fingerprint(normalized_text: str) -> str:
    """Return the SHA-256 hex digest of normalized text."""
    return hashlib.sha256(normalized_text.encode("utf-8")).hexdigest()


def create_normalized_snapshot(raw_text: str) -> NormalizedSnapshot:
    """Normalize raw text and fingerprint the result."""
    normalized = normalize_text(raw_text)
    return NormalizedSnapshot(
        normalized_text=normalized,
        fingerprint=fingerprint(normalized),
    )
