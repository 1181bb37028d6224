"""
Django admin configuration for PageWatch models.

Provides interfaces for managing tenants and monitored targets, and for
reviewing snapshots, alerts, crawl runs and pipeline errors.
"""

from django.contrib import admin
from django.utils.html import format_html

from pagewatch.models import (
    Alert,
    CrawlError,
    CrawlRun,
    Snapshot,
    Target,
    TargetLease,
    TargetStatus,
    Tenant,
)
from pagewatch.tasks import check_target_now

BADGE = (
    '<span style="background-color: {}; color: white; '
    'padding: 2px 8px; border-radius: 4px;">{}</span>'
)


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ["name", "plan", "user", "crawls_today", "manual_checks_today", "last_quota_reset"]
    list_filter = ["plan"]
    search_fields = ["name", "user__username", "user__email"]
    readonly_fields = ["id", "created_at"]
    raw_id_fields = ["user"]


@admin.register(Target)
class TargetAdmin(admin.ModelAdmin):
    """
    Admin interface for monitored targets.

    Actions dispatch manual checks and pause or resume monitoring.
    """

    list_display = [
        "display_name",
        "tenant",
        "status_badge",
        "failure_count",
        "pricing_context",
        "best_scraper",
        "last_checked_at",
    ]
    list_filter = ["status", "pricing_context", "requires_browser", "best_scraper"]
    search_fields = ["name", "url", "tenant__name"]
    readonly_fields = ["id", "failure_count", "last_checked_at", "last_failure_at", "created_at"]
    raw_id_fields = ["tenant"]
    ordering = ["-created_at"]

    fieldsets = (
        ("Identity", {
            "fields": ("id", "tenant", "name", "url"),
        }),
        ("Fetch Configuration", {
            "fields": ("pricing_context", "requires_browser", "best_scraper"),
        }),
        ("Status", {
            "fields": ("status", "failure_count", "last_checked_at", "last_failure_at", "created_at"),
        }),
    )

    actions = ["check_now", "pause_targets", "resume_targets"]

    def display_name(self, obj):
        return obj.name or obj.url
    display_name.short_description = "Target"

    def status_badge(self, obj):
        """Display status as colored badge."""
        colors = {
            TargetStatus.ACTIVE: "#28a745",
            TargetStatus.PAUSED: "#6c757d",
            TargetStatus.ERROR: "#dc3545",
        }
        return format_html(BADGE, colors.get(obj.status, "#6c757d"), obj.get_status_display())
    status_badge.short_description = "Status"
    status_badge.admin_order_field = "status"

    @admin.action(description="Check selected targets now")
    def check_now(self, request, queryset):
        count = 0
        for target in queryset.filter(status=TargetStatus.ACTIVE):
            check_target_now.apply_async(args=[str(target.id)])
            count += 1
        self.message_user(request, f"Queued manual check for {count} target(s).")

    @admin.action(description="Pause selected targets")
    def pause_targets(self, request, queryset):
        count = queryset.update(status=TargetStatus.PAUSED)
        self.message_user(request, f"Paused {count} target(s).")

    @admin.action(description="Resume selected targets (clears failures)")
    def resume_targets(self, request, queryset):
        count = queryset.update(status=TargetStatus.ACTIVE, failure_count=0)
        self.message_user(request, f"Resumed {count} target(s).")


@admin.register(Snapshot)
class SnapshotAdmin(admin.ModelAdmin):
    list_display = ["created_at", "target", "source", "short_fingerprint"]
    list_filter = ["source", ("created_at", admin.DateFieldListFilter)]
    search_fields = ["target__url", "fingerprint"]
    readonly_fields = ["id", "target", "normalized_text", "fingerprint", "source", "created_at"]
    ordering = ["-created_at"]

    def short_fingerprint(self, obj):
        return obj.fingerprint[:12]
    short_fingerprint.short_description = "Fingerprint"

    def has_add_permission(self, request):
        """Snapshots are only written by the pipeline."""
        return False


@admin.register(Alert)
class AlertAdmin(admin.ModelAdmin):
    list_display = ["created_at", "target", "severity_badge", "summary_truncated", "is_meaningful", "is_read"]
    list_filter = ["severity", "is_meaningful", "is_read", ("created_at", admin.DateFieldListFilter)]
    search_fields = ["target__url", "summary"]
    readonly_fields = [
        "id",
        "target",
        "previous_snapshot",
        "current_snapshot",
        "severity",
        "summary",
        "reason_codes",
        "details",
        "is_meaningful",
        "created_at",
    ]
    ordering = ["-created_at"]
    actions = ["mark_read"]

    def severity_badge(self, obj):
        colors = {"high": "#dc3545", "medium": "#fd7e14", "minor": "#6c757d"}
        return format_html(BADGE, colors.get(obj.severity, "#6c757d"), obj.get_severity_display())
    severity_badge.short_description = "Severity"
    severity_badge.admin_order_field = "severity"

    def summary_truncated(self, obj):
        if len(obj.summary) > 80:
            return obj.summary[:80] + "..."
        return obj.summary
    summary_truncated.short_description = "Summary"

    @admin.action(description="Mark selected alerts as read")
    def mark_read(self, request, queryset):
        count = queryset.update(is_read=True)
        self.message_user(request, f"Marked {count} alert(s) as read.")

    def has_add_permission(self, request):
        return False


@admin.register(CrawlRun)
class CrawlRunAdmin(admin.ModelAdmin):
    list_display = [
        "created_at",
        "trigger",
        "status",
        "targets_total",
        "processed",
        "skipped",
        "failed",
        "errors_count",
        "alerts_created",
        "deferred",
    ]
    list_filter = ["trigger", "status"]
    readonly_fields = [field.name for field in CrawlRun._meta.fields]
    ordering = ["-created_at"]

    def has_add_permission(self, request):
        return False


@admin.register(CrawlError)
class CrawlErrorAdmin(admin.ModelAdmin):
    """Filterable pipeline error log with full detail view."""

    list_display = ["timestamp", "target", "url_truncated", "error_type", "strategy", "resolved"]
    list_filter = ["error_type", "strategy", "resolved", ("timestamp", admin.DateFieldListFilter)]
    search_fields = ["url", "message"]
    readonly_fields = [
        "id",
        "target",
        "url",
        "error_type",
        "message",
        "strategy",
        "stack_trace_formatted",
        "timestamp",
    ]
    ordering = ["-timestamp"]
    exclude = ["stack_trace"]
    actions = ["mark_resolved", "mark_unresolved"]

    def url_truncated(self, obj):
        """Display truncated URL."""
        max_length = 50
        if len(obj.url) > max_length:
            return obj.url[:max_length] + "..."
        return obj.url
    url_truncated.short_description = "URL"

    def stack_trace_formatted(self, obj):
        """Display stack trace in a preformatted block."""
        if obj.stack_trace:
            return format_html(
                '<pre style="white-space: pre-wrap; word-wrap: break-word; '
                'background: #f5f5f5; padding: 10px; border-radius: 4px;">{}</pre>',
                obj.stack_trace
            )
        return "-"
    stack_trace_formatted.short_description = "Stack Trace"

    @admin.action(description="Mark selected errors as resolved")
    def mark_resolved(self, request, queryset):
        count = queryset.update(resolved=True)
        self.message_user(request, f"Marked {count} error(s) as resolved.")

    @admin.action(description="Mark selected errors as unresolved")
    def mark_unresolved(self, request, queryset):
        count = queryset.update(resolved=False)
        self.message_user(request, f"Marked {count} error(s) as unresolved.")

    def has_add_permission(self, request):
        """Disable manual error creation."""
        return False


@admin.register(TargetLease)
class TargetLeaseAdmin(admin.ModelAdmin):
    list_display = ["target", "owner", "claimed_at", "expires_at"]
    readonly_fields = ["target", "token", "owner", "claimed_at", "expires_at"]
