"""
Per-target leases.

A worker claims a target before processing it and releases the claim when
done. The claim is a TargetLease row with an expiry; an expired claim can be
taken over, so a crashed worker never blocks a target for longer than the
lease duration.

Usage:
    token = claim_lease(target, owner="tick-42")
    if token is None:
        return  # another worker holds it
    try:
        ...
    finally:
        release_lease(target, token)
"""

import logging
import os
import secrets
import socket
from datetime import datetime, timedelta
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from pagewatch.models import TargetLease

logger = logging.getLogger(__name__)

DEFAULT_LEASE_SECONDS = 300


def get_lease_duration() -> timedelta:
    seconds = getattr(settings, "PAGEWATCH_LEASE_SECONDS", DEFAULT_LEASE_SECONDS)
    return timedelta(seconds=seconds)


def default_owner() -> str:
    """Identify this worker process."""
    return f"{socket.gethostname()}:{os.getpid()}"


def claim_lease(
    target,
    owner: Optional[str] = None,
    duration: Optional[timedelta] = None,
    now: Optional[datetime] = None,
) -> Optional[str]:
    """
    Claim a target for exclusive processing.

    Args:
        target: Target to claim
        owner: Label for the claiming worker
        duration: Lease length (default PAGEWATCH_LEASE_SECONDS)
        now: Claim time

    Returns:
        Lease token, or None if another worker holds a live lease
    """
    now = now or timezone.now()
    expires_at = now + (duration or get_lease_duration())
    token = secrets.token_hex(16)
    owner = owner or default_owner()

    # Take over a lapsed lease in a single conditional update
    taken_over = TargetLease.objects.filter(target=target, expires_at__lte=now).update(
        token=token,
        owner=owner,
        claimed_at=now,
        expires_at=expires_at,
    )
    if taken_over:
        logger.info("Took over expired lease on target %s", target.id)
        return token

    try:
        with transaction.atomic():
            TargetLease.objects.create(
                target=target,
                token=token,
                owner=owner,
                claimed_at=now,
                expires_at=expires_at,
            )
    except IntegrityError:
        logger.debug("Target %s is leased by another worker", target.id)
        return None

    return token


def release_lease(target, token: str) -> bool:
    """
    Release a lease held under token.

    A lease that was taken over after expiring is left alone.

    Returns:
        True if the lease was released
    """
    deleted, _ = TargetLease.objects.filter(target=target, token=token).delete()
    if not deleted:
        logger.warning("Lease on target %s was lost before release", target.id)
    return bool(deleted)


def is_leased(target, now: Optional[datetime] = None) -> bool:
    """Check whether a live lease exists on the target."""
    now = now or timezone.now()
    return TargetLease.objects.filter(target=target, expires_at__gt=now).exists()


def purge_expired_leases(now: Optional[datetime] = None) -> int:
    """Delete lapsed leases. Returns the number removed."""
    now = now or timezone.now()
    deleted, _ = TargetLease.objects.filter(expires_at__lte=now).delete()
    return deleted
