"""
Eligibility gate, abuse/throttle guardrails and frequency decay.
"""

from .eligibility import (
    ELIGIBILITY_RULES,
    EligibilityResult,
    FailureRecord,
    evaluate,
    is_eligible_url,
    is_hash_seen_recently,
    record_failure,
    record_success,
)
from .abuse import (
    AbuseDetectionResult,
    check_global_throttle,
    detect_manual_spam,
    detect_page_hoarding,
    detect_volatile_page,
    most_restrictive,
)
from .frequency import should_check_by_frequency

__all__ = [
    "ELIGIBILITY_RULES",
    "EligibilityResult",
    "FailureRecord",
    "evaluate",
    "is_eligible_url",
    "is_hash_seen_recently",
    "record_failure",
    "record_success",
    "AbuseDetectionResult",
    "check_global_throttle",
    "detect_manual_spam",
    "detect_page_hoarding",
    "detect_volatile_page",
    "most_restrictive",
    "should_check_by_frequency",
]
