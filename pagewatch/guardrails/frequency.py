"""
Frequency decay for pages that have stopped changing.

Pages with no meaningful change for a long time are sampled on a fraction
of ticks instead of every tick.
"""

import random
from datetime import datetime
from typing import Callable, Optional

from django.utils import timezone

from pagewatch.models import Alert

# (days without change, probability of checking on a given tick)
DECAY_STEPS = (
    (90, 0.25),
    (30, 0.50),
)


def check_probability(last_change_at: Optional[datetime], now: Optional[datetime] = None) -> float:
    """Return the probability of checking a page on this tick."""
    if last_change_at is None:
        return 1.0

    now = now or timezone.now()
    days_since_change = (now - last_change_at).total_seconds() / 86400

    for days, probability in DECAY_STEPS:
        if days_since_change > days:
            return probability

    return 1.0


def should_check_by_frequency(
    last_change_at: Optional[datetime],
    now: Optional[datetime] = None,
    rand: Callable[[], float] = random.random,
) -> bool:
    """Decide whether a page is sampled on this tick."""
    probability = check_probability(last_change_at, now)
    if probability >= 1.0:
        return True
    return rand() < probability


def get_last_meaningful_change(target) -> Optional[datetime]:
    """Timestamp of the target's latest meaningful alert."""
    return (
        Alert.objects.filter(target=target, is_meaningful=True)
        .order_by("-created_at")
        .values_list("created_at", flat=True)
        .first()
    )
