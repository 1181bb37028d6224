"""
Tests for per-target leases.
"""

from datetime import timedelta

import pytest


@pytest.mark.django_db
class TestClaimLease:
    """Tests for claim_lease() and release_lease()."""

    def test_claim_free_target(self, target):
        from pagewatch.models import TargetLease
        from pagewatch.services.lease import claim_lease, is_leased

        token = claim_lease(target, owner="worker-a")

        assert token
        assert is_leased(target) is True
        lease = TargetLease.objects.get(target=target)
        assert lease.owner == "worker-a"
        assert lease.token == token

    def test_second_claim_is_refused(self, target):
        from pagewatch.services.lease import claim_lease

        first = claim_lease(target, owner="worker-a")
        second = claim_lease(target, owner="worker-b")

        assert first is not None
        assert second is None

    def test_expired_lease_is_taken_over(self, target):
        from django.utils import timezone

        from pagewatch.models import TargetLease
        from pagewatch.services.lease import claim_lease

        past = timezone.now() - timedelta(minutes=10)
        stale = claim_lease(target, owner="crashed", duration=timedelta(minutes=5), now=past)

        token = claim_lease(target, owner="worker-b")

        assert token is not None
        assert token != stale
        assert TargetLease.objects.get(target=target).owner == "worker-b"

    def test_release(self, target):
        from pagewatch.services.lease import claim_lease, is_leased, release_lease

        token = claim_lease(target)

        assert release_lease(target, token) is True
        assert is_leased(target) is False

    def test_release_with_wrong_token_keeps_lease(self, target):
        from pagewatch.services.lease import claim_lease, is_leased, release_lease

        claim_lease(target)

        assert release_lease(target, "not-my-token") is False
        assert is_leased(target) is True

    def test_claim_after_release(self, target):
        from pagewatch.services.lease import claim_lease, release_lease

        token = claim_lease(target)
        release_lease(target, token)

        assert claim_lease(target) is not None

    def test_duration_from_settings(self, settings, target):
        from pagewatch.models import TargetLease
        from pagewatch.services.lease import claim_lease

        settings.PAGEWATCH_LEASE_SECONDS = 60
        claim_lease(target)

        lease = TargetLease.objects.get(target=target)
        assert lease.expires_at - lease.claimed_at == timedelta(seconds=60)


@pytest.mark.django_db
class TestPurgeExpiredLeases:
    """Tests for purge_expired_leases()."""

    def test_only_expired_leases_removed(self, tenant, target):
        from django.utils import timezone

        from pagewatch.models import Target, TargetLease
        from pagewatch.services.lease import claim_lease, purge_expired_leases

        other = Target.objects.create(tenant=tenant, url="https://other.example.com/pricing")
        claim_lease(target, now=timezone.now() - timedelta(hours=1), duration=timedelta(minutes=5))
        claim_lease(other)

        assert purge_expired_leases() == 1
        assert list(TargetLease.objects.values_list("target_id", flat=True)) == [other.id]


@pytest.mark.django_db(transaction=True)
@pytest.mark.asyncio
class TestLeaseFromWorkerThread:
    """Leases are claimed from sync_to_async threads during a tick."""

    async def test_claim_and_release_off_the_event_loop(self, target):
        from asgiref.sync import sync_to_async

        from pagewatch.models import TargetLease
        from pagewatch.services.lease import claim_lease, release_lease

        token = await sync_to_async(claim_lease)(target, owner="tick-worker")

        assert token is not None
        assert await sync_to_async(TargetLease.objects.filter(target=target).count)() == 1
        assert await sync_to_async(release_lease)(target, token) is True
