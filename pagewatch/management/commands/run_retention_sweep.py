"""
Management command to delete snapshot and alert history past each plan's
retention window.

Usage:
    python manage.py run_retention_sweep
    python manage.py run_retention_sweep --dry-run
    python manage.py run_retention_sweep --verbose
"""

import logging

from django.core.management.base import BaseCommand, CommandError

from pagewatch.services.retention import RetentionSweeper

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Run the retention sweep synchronously."""

    help = 'Delete snapshots and alerts older than each tenant plan allows'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Count what would be deleted without deleting anything',
        )
        parser.add_argument(
            '--verbose',
            action='store_true',
            help='Print per-tenant deletion counts',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        verbose = options['verbose'] or dry_run

        if dry_run:
            self.stdout.write(self.style.WARNING('Running in dry-run mode - nothing will be deleted'))

        result = RetentionSweeper(dry_run=dry_run).run()

        if not result.success:
            raise CommandError(f'Retention sweep failed: {result.error}')

        if verbose:
            for detail in result.details:
                self.stdout.write(
                    f'  Tenant {detail.tenant_id} ({detail.plan}): '
                    f'{detail.snapshots_deleted} snapshots, {detail.alerts_deleted} alerts'
                )

        verb = 'Would delete' if dry_run else 'Deleted'
        message = f'{verb} {result.total_deleted} records across {result.tenants_affected} tenants'

        if result.tenants_failed:
            self.stdout.write(self.style.WARNING(f'{message} ({result.tenants_failed} tenants failed)'))
        elif dry_run:
            self.stdout.write(self.style.WARNING(message))
        else:
            self.stdout.write(self.style.SUCCESS(message))
