"""
Pytest configuration and fixtures for the PageWatch test suite.
"""

from datetime import timedelta

import pytest


@pytest.fixture(autouse=True)
def offline_crawl_volume():
    """Keep the crawl volume counter off Redis for every test."""
    from pagewatch.monitoring import crawl_volume

    crawl_volume._crawl_volume_counter = crawl_volume.CrawlVolumeCounter(redis_client=None)
    yield crawl_volume._crawl_volume_counter
    crawl_volume._crawl_volume_counter = None


@pytest.fixture(autouse=True)
def clear_cache():
    """Reset API throttle history between tests."""
    from django.core.cache import cache

    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Create a test API client."""
    from rest_framework.test import APIClient

    return APIClient()


@pytest.fixture
def user(db):
    from django.contrib.auth import get_user_model

    return get_user_model().objects.create_user(username="owner", password="secret-pass")


@pytest.fixture
def tenant(db, user):
    """Create a free-plan Tenant owned by the test user."""
    from pagewatch.models import PlanTier, Tenant

    return Tenant.objects.create(name="Acme", user=user, plan=PlanTier.FREE)


@pytest.fixture
def pro_tenant(db):
    """Create a pro-plan Tenant."""
    from pagewatch.models import PlanTier, Tenant

    return Tenant.objects.create(name="Globex", plan=PlanTier.PRO)


@pytest.fixture
def target(db, tenant):
    """Create an active Target on a pricing page."""
    from pagewatch.models import Target

    return Target.objects.create(
        tenant=tenant,
        name="Competitor pricing",
        url="https://competitor.example.com/pricing",
    )


@pytest.fixture
def make_snapshot(db):
    """Factory for Snapshots with explicit fingerprints and ages."""
    from django.utils import timezone

    from pagewatch.diff import fingerprint
    from pagewatch.models import ScraperSource, Snapshot

    def _make(target, text="pro plan $49/mo", source=ScraperSource.CHEAP, age=None, digest=None):
        return Snapshot.objects.create(
            target=target,
            normalized_text=text,
            fingerprint=digest or fingerprint(text),
            source=source,
            created_at=timezone.now() - (age or timedelta(0)),
        )

    return _make


@pytest.fixture
def volume_counter():
    """Crawl volume counter without Redis (counts today's snapshots)."""
    from pagewatch.monitoring import CrawlVolumeCounter

    return CrawlVolumeCounter(redis_client=None)


@pytest.fixture
def pricing_page():
    """Factory for realistic extracted pricing page text."""

    def _page(pro_price=49, extra=""):
        return (
            "# Simple pricing for growing teams\n"
            "Starter plan: $19/mo for individuals getting started.\n"
            f"Pro plan: ${pro_price}/mo billed annually.\n"
            "Includes unlimited projects and 10 users on every paid plan.\n"
            "Enterprise: contact sales for custom contracts and SSO.\n"
            f"{extra}"
            "Copyright 2024 Competitor Inc. All rights reserved."
        )

    return _page
