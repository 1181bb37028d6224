"""
Tests for the manual check API endpoint.

The orchestrator is replaced with a fake so the tests cover only the HTTP
mapping of check results.
"""

from unittest.mock import patch

import pytest


class FakeOrchestrator:
    """Returns a canned result and records the targets it was asked about."""

    def __init__(self, result=None, exc=None):
        self.result = result
        self.exc = exc
        self.calls = []

    async def check_now(self, target_id):
        self.calls.append(target_id)
        if self.exc is not None:
            raise self.exc
        return self.result


def check_url(target_id):
    return f"/api/v1/targets/{target_id}/check-now/"


@pytest.mark.django_db
class TestCheckTargetNowEndpoint:
    """Tests for POST /api/v1/targets/<id>/check-now/."""

    def test_completed_check(self, api_client, user, target):
        from pagewatch.services.orchestrator import ManualCheckResult, TargetOutcome

        outcome = TargetOutcome(
            target_id=str(target.id),
            status="processed",
            reason="Pricing updated: Pro:$49→$59",
            strategy="cheap",
            severity="high",
            alert_created=True,
        )
        fake = FakeOrchestrator(
            ManualCheckResult(success=True, status="completed", reason=outcome.reason, outcome=outcome)
        )
        api_client.force_authenticate(user=user)

        with patch("pagewatch.api.views._get_orchestrator", return_value=fake):
            response = api_client.post(check_url(target.id))

        assert response.status_code == 200
        assert response.data["success"] is True
        assert response.data["message"] == "Pricing updated: Pro:$49→$59"
        assert response.data["severity"] == "high"
        assert response.data["alert_created"] is True
        assert response.data["escalated"] is False
        assert fake.calls == [target.id]

    def test_fetch_failure_is_reported(self, api_client, user, target):
        from pagewatch.services.orchestrator import ManualCheckResult

        fake = FakeOrchestrator(
            ManualCheckResult(success=False, status="failed", reason="We couldn't fetch this page")
        )
        api_client.force_authenticate(user=user)

        with patch("pagewatch.api.views._get_orchestrator", return_value=fake):
            response = api_client.post(check_url(target.id))

        assert response.status_code == 200
        assert response.data["success"] is False
        assert response.data["message"] == "We couldn't fetch this page"
        assert "severity" not in response.data

    def test_denied_check_returns_429(self, api_client, user, target):
        from pagewatch.services.orchestrator import ManualCheckResult

        fake = FakeOrchestrator(
            ManualCheckResult(
                success=False,
                status="denied",
                reason="You've reached today's manual check limit. We'll check again tomorrow.",
                flag="manual_spam",
                action="soft_block",
                upgrade_prompt=True,
            )
        )
        api_client.force_authenticate(user=user)

        with patch("pagewatch.api.views._get_orchestrator", return_value=fake):
            response = api_client.post(check_url(target.id))

        assert response.status_code == 429
        assert response.data == {
            "success": False,
            "flag": "manual_spam",
            "message": "You've reached today's manual check limit. We'll check again tomorrow.",
            "action": "soft_block",
            "upgrade_prompt": True,
        }

    def test_ineligible_target_returns_409(self, api_client, user, target):
        from pagewatch.services.orchestrator import ManualCheckResult

        fake = FakeOrchestrator(
            ManualCheckResult(success=False, status="ineligible", reason="Target is paused")
        )
        api_client.force_authenticate(user=user)

        with patch("pagewatch.api.views._get_orchestrator", return_value=fake):
            response = api_client.post(check_url(target.id))

        assert response.status_code == 409

    def test_other_users_target_is_hidden(self, api_client, pro_tenant):
        from django.contrib.auth import get_user_model

        from pagewatch.models import Target

        stranger = get_user_model().objects.create_user(username="stranger", password="x")
        foreign = Target.objects.create(tenant=pro_tenant, url="https://globex.example.com/pricing")
        fake = FakeOrchestrator()
        api_client.force_authenticate(user=stranger)

        with patch("pagewatch.api.views._get_orchestrator", return_value=fake):
            response = api_client.post(check_url(foreign.id))

        assert response.status_code == 404
        assert fake.calls == []

    def test_missing_target(self, api_client, user):
        import uuid

        api_client.force_authenticate(user=user)

        response = api_client.post(check_url(uuid.uuid4()))

        assert response.status_code == 404

    def test_target_deleted_mid_request(self, api_client, user, target):
        from pagewatch.models import Target

        fake = FakeOrchestrator(exc=Target.DoesNotExist())
        api_client.force_authenticate(user=user)

        with patch("pagewatch.api.views._get_orchestrator", return_value=fake):
            response = api_client.post(check_url(target.id))

        assert response.status_code == 404

    def test_requires_authentication(self, api_client, target):
        response = api_client.post(check_url(target.id))

        assert response.status_code in (401, 403)

    def test_get_not_allowed(self, api_client, user, target):
        api_client.force_authenticate(user=user)

        response = api_client.get(check_url(target.id))

        assert response.status_code == 405


@pytest.mark.django_db
class TestManualCheckThrottle:
    """Tests for the per-user request throttle on the endpoint."""

    def test_throttled_after_rate_exhausted(self, api_client, user, target):
        from pagewatch.services.orchestrator import ManualCheckResult

        fake = FakeOrchestrator(ManualCheckResult(success=True, status="completed", reason="No changes detected"))
        api_client.force_authenticate(user=user)

        with patch("pagewatch.api.views._get_orchestrator", return_value=fake):
            statuses = [api_client.post(check_url(target.id)).status_code for _ in range(11)]

        assert statuses[:10] == [200] * 10
        assert statuses[10] == 429
        assert len(fake.calls) == 10
