"""
Django models for the PageWatch change-detection system.

Models: Tenant, Target, Snapshot, Alert, TargetLease, CrawlRun, CrawlError

Targets are never hard-deleted here; Snapshots are immutable once written and
Alerts are append-only. Both are pruned by the retention sweeper.
"""

import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone


class PlanTier(models.TextChoices):
    """Subscription plan of a tenant."""

    FREE = "free", "Free"
    PRO = "pro", "Pro"


class TargetStatus(models.TextChoices):
    """Lifecycle status of a monitored page."""

    ACTIVE = "active", "Active"
    PAUSED = "paused", "Paused"
    ERROR = "error", "Error"


class ScraperSource(models.TextChoices):
    """Fetch strategy used to capture a snapshot."""

    CHEAP = "cheap", "Cheap (httpx)"
    ACCURATE = "accurate", "Accurate (Playwright)"


class AlertSeverity(models.TextChoices):
    """Severity assigned by the meaningfulness classifier."""

    HIGH = "high", "High"
    MEDIUM = "medium", "Medium"
    MINOR = "minor", "Minor"


class CrawlTrigger(models.TextChoices):
    """What started a crawl run."""

    SCHEDULED = "scheduled", "Scheduled"
    MANUAL = "manual", "Manual"


class CrawlRunStatus(models.TextChoices):
    """Status of a crawl run."""

    PENDING = "pending", "Pending"
    RUNNING = "running", "Running"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class ErrorType(models.TextChoices):
    """Types of pipeline errors."""

    TIMEOUT = "timeout", "Timeout"
    BLOCKED = "blocked", "Blocked/403/429"
    EMPTY = "empty", "Empty Content"
    CLASSIFICATION = "classification", "Classification Error"
    PERSISTENCE = "persistence", "Persistence Error"
    UNKNOWN = "unknown", "Unknown Error"


class Tenant(models.Model):
    """
    Owner of monitored targets, with plan tier and daily quota counters.

    The daily counters are rolled over by the quota manager on the first
    quota-consuming operation of a new UTC day.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="pagewatch_tenant",
    )
    plan = models.CharField(
        max_length=20, choices=PlanTier.choices, default=PlanTier.FREE
    )

    # Quota state
    manual_checks_today = models.IntegerField(default=0)
    crawls_today = models.IntegerField(default=0)
    last_quota_reset = models.DateTimeField(default=timezone.now)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "pagewatch_tenants"
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.plan})"


class Target(models.Model):
    """
    A monitored external page belonging to a tenant.

    failure_count only increases on failure and is zeroed on the next
    success. A target whose status is not active is never fetched.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(
        Tenant, on_delete=models.CASCADE, related_name="targets"
    )
    name = models.CharField(max_length=200, blank=True)
    url = models.URLField(max_length=2000)

    status = models.CharField(
        max_length=20, choices=TargetStatus.choices, default=TargetStatus.ACTIVE
    )
    failure_count = models.IntegerField(default=0)
    last_checked_at = models.DateTimeField(null=True, blank=True)
    last_failure_at = models.DateTimeField(null=True, blank=True)

    # Fetch configuration
    pricing_context = models.CharField(
        max_length=20,
        default="global",
        help_text="Region key used for locale and expected currency symbols",
    )
    requires_browser = models.BooleanField(
        default=False,
        help_text="Always fetch with the accurate (browser) strategy",
    )
    best_scraper = models.CharField(
        max_length=20,
        choices=ScraperSource.choices,
        blank=True,
        help_text="Strategy proven best by recent consecutive snapshots",
    )

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "pagewatch_targets"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "last_checked_at"], name="pw_target_status_idx"),
            models.Index(fields=["tenant", "created_at"], name="pw_target_tenant_idx"),
        ]

    def __str__(self):
        return f"{self.name or self.url} ({self.status})"


class Snapshot(models.Model):
    """One normalized capture of a target's content. Immutable."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    target = models.ForeignKey(
        Target, on_delete=models.CASCADE, related_name="snapshots"
    )
    normalized_text = models.TextField()
    fingerprint = models.CharField(max_length=64)
    source = models.CharField(max_length=20, choices=ScraperSource.choices)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "pagewatch_snapshots"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["target", "created_at"], name="pw_snapshot_target_idx"),
            models.Index(fields=["target", "fingerprint"], name="pw_snapshot_fp_idx"),
            models.Index(fields=["created_at"], name="pw_snapshot_created_idx"),
        ]

    def __str__(self):
        return f"Snapshot {self.fingerprint[:12]} of {self.target_id} ({self.source})"


class Alert(models.Model):
    """
    Created only for a diff the classifier judged meaningful.

    Carries the machine-derived summary and the detail payload consumed by
    notification dispatch.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    target = models.ForeignKey(
        Target, on_delete=models.CASCADE, related_name="alerts"
    )
    previous_snapshot = models.ForeignKey(
        Snapshot,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    current_snapshot = models.ForeignKey(
        Snapshot,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    severity = models.CharField(max_length=20, choices=AlertSeverity.choices)
    summary = models.TextField()
    reason_codes = models.JSONField(default=list, blank=True)
    details = models.JSONField(default=dict, blank=True)
    is_meaningful = models.BooleanField(default=True)
    is_read = models.BooleanField(default=False)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "pagewatch_alerts"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["target", "created_at"], name="pw_alert_target_idx"),
            models.Index(fields=["is_meaningful", "created_at"], name="pw_alert_meaningful_idx"),
        ]

    def __str__(self):
        return f"{self.severity}: {self.summary[:50]}"


class TargetLease(models.Model):
    """
    Short-lived claim on a target held by one worker.

    A lease whose expires_at has passed is treated as released, so a crashed
    worker's claim lapses without intervention.
    """

    target = models.OneToOneField(
        Target, on_delete=models.CASCADE, related_name="lease"
    )
    token = models.CharField(max_length=64)
    owner = models.CharField(max_length=255, blank=True)
    claimed_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField()

    class Meta:
        db_table = "pagewatch_target_leases"
        indexes = [
            models.Index(fields=["expires_at"], name="pw_lease_expires_idx"),
        ]

    def __str__(self):
        return f"Lease {self.token[:8]} on {self.target_id} until {self.expires_at}"

    def is_expired(self, now=None) -> bool:
        """Check whether the claim has lapsed."""
        return self.expires_at <= (now or timezone.now())


class CrawlRun(models.Model):
    """
    Tracks one orchestrator tick or manual check.

    Holds the batch summary counters for monitoring.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    trigger = models.CharField(
        max_length=20, choices=CrawlTrigger.choices, default=CrawlTrigger.SCHEDULED
    )
    status = models.CharField(
        max_length=20, choices=CrawlRunStatus.choices, default=CrawlRunStatus.PENDING
    )

    # Timing
    created_at = models.DateTimeField(default=timezone.now)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    # Metrics
    targets_total = models.IntegerField(default=0)
    processed = models.IntegerField(default=0)
    skipped = models.IntegerField(default=0)
    failed = models.IntegerField(default=0)
    errors_count = models.IntegerField(default=0)
    alerts_created = models.IntegerField(default=0)
    deferred = models.IntegerField(default=0)

    summary = models.JSONField(default=dict, blank=True)
    error_message = models.TextField(blank=True)

    class Meta:
        db_table = "pagewatch_crawl_runs"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="pw_run_status_idx"),
        ]

    def __str__(self):
        return f"Run {self.id} ({self.trigger}, {self.status})"

    @property
    def duration_seconds(self):
        """Calculate run duration."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def start(self):
        """Mark run as started."""
        self.status = CrawlRunStatus.RUNNING
        self.started_at = timezone.now()
        self.save(update_fields=["status", "started_at"])

    def complete(self, success: bool = True, error_message: str = None):
        """Mark run as completed or failed."""
        self.status = CrawlRunStatus.COMPLETED if success else CrawlRunStatus.FAILED
        self.completed_at = timezone.now()
        if error_message:
            self.error_message = error_message
        self.save(
            update_fields=[
                "status",
                "completed_at",
                "error_message",
                "targets_total",
                "processed",
                "skipped",
                "failed",
                "errors_count",
                "alerts_created",
                "deferred",
                "summary",
            ]
        )


class CrawlError(models.Model):
    """Persistent record of a failed fetch or aborted target run."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    target = models.ForeignKey(
        Target,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="errors",
    )
    url = models.URLField(max_length=2000, help_text="URL that caused the error")

    error_type = models.CharField(
        max_length=20,
        choices=ErrorType.choices,
        help_text="Category of error",
    )
    message = models.TextField(help_text="Error message")
    strategy = models.CharField(
        max_length=20,
        blank=True,
        help_text="Fetch strategy in use when the error occurred",
    )
    stack_trace = models.TextField(blank=True, help_text="Full stack trace if available")

    timestamp = models.DateTimeField(default=timezone.now)
    resolved = models.BooleanField(default=False)

    class Meta:
        db_table = "pagewatch_crawl_errors"
        ordering = ["-timestamp"]
        indexes = [
            models.Index(fields=["target", "timestamp"], name="pw_error_target_idx"),
            models.Index(fields=["error_type", "timestamp"], name="pw_error_type_idx"),
        ]

    def __str__(self):
        return f"{self.error_type}: {self.message[:50]}... ({self.timestamp})"
