"""
API throttling classes.

Custom throttle classes for API rate limiting.
"""

from rest_framework.throttling import UserRateThrottle


class ManualCheckThrottle(UserRateThrottle):
    """
    Throttle for manual "check now" requests.

    Rate: 10 requests per hour per user. Plan quotas and abuse guardrails
    apply on top of this.
    Applied to: /api/v1/targets/<id>/check-now/
    """

    rate = '10/hour'
    scope = 'manual_check'
