"""
PageWatch REST API.

This module provides REST API endpoints for:
- Manual "check now" on a monitored target

All endpoints require authentication and have rate limiting.
"""

from pagewatch.api.views import check_target_now
from pagewatch.api.throttling import ManualCheckThrottle

__all__ = [
    # Views
    'check_target_now',
    # Throttling
    'ManualCheckThrottle',
]
