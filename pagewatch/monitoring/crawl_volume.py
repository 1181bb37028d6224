"""
Global daily crawl volume counter.

Feeds the global throttle. Each fetched target increments a Redis counter
keyed by UTC date; the key expires after two days. When Redis is not
reachable the count falls back to today's snapshot rows.

Usage:
    from pagewatch.monitoring import get_crawl_volume_counter

    counter = get_crawl_volume_counter()
    counter.increment()
    today = counter.get_today_count()
"""

import logging
from datetime import datetime, time, timezone as dt_timezone
from typing import Optional

from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)

# Keep yesterday's counter around for inspection
COUNTER_TTL = 2 * 86400


class CrawlVolumeCounter:
    """Counts crawls per UTC day across all tenants."""

    def __init__(self, redis_client=None, key_prefix: str = "pagewatch:crawls:"):
        """
        Initialize the counter.

        Args:
            redis_client: Redis client instance (None uses the database fallback)
            key_prefix: Redis key prefix for daily counters
        """
        self.redis_client = redis_client
        self.key_prefix = key_prefix

    def _get_key(self, now: Optional[datetime] = None) -> str:
        now = now or timezone.now()
        return f"{self.key_prefix}{now.astimezone(dt_timezone.utc).date().isoformat()}"

    def increment(self, amount: int = 1, now: Optional[datetime] = None) -> int:
        """
        Add crawls to today's counter.

        Returns:
            New count, or 0 if Redis is unavailable
        """
        if self.redis_client is None:
            return 0

        key = self._get_key(now)

        try:
            count = self.redis_client.incr(key, amount)
            if count == amount:
                self.redis_client.expire(key, COUNTER_TTL)
            return count

        except Exception as e:
            logger.warning(f"Failed to increment crawl volume in Redis: {e}")
            return 0

    def get_today_count(self, now: Optional[datetime] = None) -> int:
        """Today's crawl count across all tenants."""
        if self.redis_client is not None:
            try:
                count = self.redis_client.get(self._get_key(now))
                return int(count) if count else 0
            except Exception as e:
                logger.warning(f"Failed to read crawl volume from Redis: {e}")

        return self._count_from_database(now)

    def _count_from_database(self, now: Optional[datetime] = None) -> int:
        from pagewatch.models import Snapshot

        now = now or timezone.now()
        day_start = datetime.combine(
            now.astimezone(dt_timezone.utc).date(), time.min, tzinfo=dt_timezone.utc
        )
        return Snapshot.objects.filter(created_at__gte=day_start).count()


# Singleton instance
_crawl_volume_counter: Optional[CrawlVolumeCounter] = None


def get_crawl_volume_counter() -> CrawlVolumeCounter:
    """
    Get the global crawl volume counter.

    Creates the counter with a Redis connection on first call.
    """
    global _crawl_volume_counter

    if _crawl_volume_counter is None:
        _crawl_volume_counter = CrawlVolumeCounter(redis_client=_get_redis_client())

    return _crawl_volume_counter


def _get_redis_client():
    """
    Get a Redis client from the Celery broker URL.

    Returns:
        Redis client or None if connection fails
    """
    try:
        import redis

        broker_url = getattr(settings, "CELERY_BROKER_URL", "redis://localhost:6379/1")
        client = redis.from_url(broker_url)
        client.ping()
        return client

    except Exception as e:
        logger.warning(f"Failed to connect to Redis for crawl volume tracking: {e}")
        return None
