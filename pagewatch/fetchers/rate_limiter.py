"""
Per-backend request spacing for async fetchers.

Each backend gets one limiter shared by every worker in a tick, so the
bounded worker pool never exceeds the backend's queries-per-second budget.
"""

import asyncio
import time
from typing import Dict, Optional

from django.conf import settings

DEFAULT_BACKEND_QPS = {
    "cheap": 5.0,
    "accurate": 1.0,
}


class AsyncRateLimiter:
    """
    Queries-per-second limiter for coroutines.

    acquire() reserves the next free slot under a lock and then sleeps
    outside it, so waiting callers queue in arrival order.
    """

    def __init__(self, qps: float, clock=time.monotonic):
        self.qps = qps
        self._interval = 1.0 / qps if qps > 0 else 0.0
        self._clock = clock
        self._lock = asyncio.Lock()
        self._next_allowed = 0.0

    async def acquire(self) -> float:
        """
        Wait until the next request is permitted.

        Returns:
            Seconds spent waiting
        """
        if self._interval <= 0:
            return 0.0

        async with self._lock:
            now = self._clock()
            slot = max(self._next_allowed, now)
            self._next_allowed = slot + self._interval

        delay = slot - now
        if delay > 0:
            await asyncio.sleep(delay)
        return max(delay, 0.0)

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


def get_backend_qps(strategy: str) -> float:
    configured = getattr(settings, "PAGEWATCH_BACKEND_QPS", DEFAULT_BACKEND_QPS)
    return configured.get(strategy, DEFAULT_BACKEND_QPS.get(strategy, 1.0))


def build_rate_limiters(qps: Optional[Dict[str, float]] = None) -> Dict[str, AsyncRateLimiter]:
    """
    Create one limiter per fetch strategy.

    Limiters hold an asyncio.Lock, so a fresh set is built for every event
    loop (one per crawl tick).
    """
    strategies = set(DEFAULT_BACKEND_QPS) | set(qps or {})
    return {
        strategy: AsyncRateLimiter((qps or {}).get(strategy, get_backend_qps(strategy)))
        for strategy in strategies
    }
