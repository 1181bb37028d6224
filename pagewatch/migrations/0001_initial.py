import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Tenant",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=200)),
                ("plan", models.CharField(choices=[("free", "Free"), ("pro", "Pro")], default="free", max_length=20)),
                ("manual_checks_today", models.IntegerField(default=0)),
                ("crawls_today", models.IntegerField(default=0)),
                ("last_quota_reset", models.DateTimeField(default=django.utils.timezone.now)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "user",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="pagewatch_tenant",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "pagewatch_tenants",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Target",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(blank=True, max_length=200)),
                ("url", models.URLField(max_length=2000)),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("paused", "Paused"), ("error", "Error")],
                        default="active",
                        max_length=20,
                    ),
                ),
                ("failure_count", models.IntegerField(default=0)),
                ("last_checked_at", models.DateTimeField(blank=True, null=True)),
                ("last_failure_at", models.DateTimeField(blank=True, null=True)),
                (
                    "pricing_context",
                    models.CharField(
                        default="global",
                        help_text="Region key used for locale and expected currency symbols",
                        max_length=20,
                    ),
                ),
                (
                    "requires_browser",
                    models.BooleanField(
                        default=False,
                        help_text="Always fetch with the accurate (browser) strategy",
                    ),
                ),
                (
                    "best_scraper",
                    models.CharField(
                        blank=True,
                        choices=[("cheap", "Cheap (httpx)"), ("accurate", "Accurate (Playwright)")],
                        help_text="Strategy proven best by recent consecutive snapshots",
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "tenant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="targets",
                        to="pagewatch.tenant",
                    ),
                ),
            ],
            options={
                "db_table": "pagewatch_targets",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "last_checked_at"], name="pw_target_status_idx"),
                    models.Index(fields=["tenant", "created_at"], name="pw_target_tenant_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Snapshot",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("normalized_text", models.TextField()),
                ("fingerprint", models.CharField(max_length=64)),
                (
                    "source",
                    models.CharField(
                        choices=[("cheap", "Cheap (httpx)"), ("accurate", "Accurate (Playwright)")],
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "target",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="snapshots",
                        to="pagewatch.target",
                    ),
                ),
            ],
            options={
                "db_table": "pagewatch_snapshots",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["target", "created_at"], name="pw_snapshot_target_idx"),
                    models.Index(fields=["target", "fingerprint"], name="pw_snapshot_fp_idx"),
                    models.Index(fields=["created_at"], name="pw_snapshot_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Alert",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "severity",
                    models.CharField(
                        choices=[("high", "High"), ("medium", "Medium"), ("minor", "Minor")],
                        max_length=20,
                    ),
                ),
                ("summary", models.TextField()),
                ("reason_codes", models.JSONField(blank=True, default=list)),
                ("details", models.JSONField(blank=True, default=dict)),
                ("is_meaningful", models.BooleanField(default=True)),
                ("is_read", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "current_snapshot",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="pagewatch.snapshot",
                    ),
                ),
                (
                    "previous_snapshot",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="pagewatch.snapshot",
                    ),
                ),
                (
                    "target",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="alerts",
                        to="pagewatch.target",
                    ),
                ),
            ],
            options={
                "db_table": "pagewatch_alerts",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["target", "created_at"], name="pw_alert_target_idx"),
                    models.Index(fields=["is_meaningful", "created_at"], name="pw_alert_meaningful_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TargetLease",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("token", models.CharField(max_length=64)),
                ("owner", models.CharField(blank=True, max_length=255)),
                ("claimed_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("expires_at", models.DateTimeField()),
                (
                    "target",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lease",
                        to="pagewatch.target",
                    ),
                ),
            ],
            options={
                "db_table": "pagewatch_target_leases",
                "indexes": [
                    models.Index(fields=["expires_at"], name="pw_lease_expires_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CrawlRun",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "trigger",
                    models.CharField(
                        choices=[("scheduled", "Scheduled"), ("manual", "Manual")],
                        default="scheduled",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("running", "Running"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("targets_total", models.IntegerField(default=0)),
                ("processed", models.IntegerField(default=0)),
                ("skipped", models.IntegerField(default=0)),
                ("failed", models.IntegerField(default=0)),
                ("errors_count", models.IntegerField(default=0)),
                ("alerts_created", models.IntegerField(default=0)),
                ("deferred", models.IntegerField(default=0)),
                ("summary", models.JSONField(blank=True, default=dict)),
                ("error_message", models.TextField(blank=True)),
            ],
            options={
                "db_table": "pagewatch_crawl_runs",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="pw_run_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CrawlError",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("url", models.URLField(help_text="URL that caused the error", max_length=2000)),
                (
                    "error_type",
                    models.CharField(
                        choices=[
                            ("timeout", "Timeout"),
                            ("blocked", "Blocked/403/429"),
                            ("empty", "Empty Content"),
                            ("classification", "Classification Error"),
                            ("persistence", "Persistence Error"),
                            ("unknown", "Unknown Error"),
                        ],
                        help_text="Category of error",
                        max_length=20,
                    ),
                ),
                ("message", models.TextField(help_text="Error message")),
                (
                    "strategy",
                    models.CharField(
                        blank=True,
                        help_text="Fetch strategy in use when the error occurred",
                        max_length=20,
                    ),
                ),
                ("stack_trace", models.TextField(blank=True, help_text="Full stack trace if available")),
                ("timestamp", models.DateTimeField(default=django.utils.timezone.now)),
                ("resolved", models.BooleanField(default=False)),
                (
                    "target",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="errors",
                        to="pagewatch.target",
                    ),
                ),
            ],
            options={
                "db_table": "pagewatch_crawl_errors",
                "ordering": ["-timestamp"],
                "indexes": [
                    models.Index(fields=["target", "timestamp"], name="pw_error_target_idx"),
                    models.Index(fields=["error_type", "timestamp"], name="pw_error_type_idx"),
                ],
            },
        ),
    ]
