"""
Management command to run one crawl tick from the command line.

Usage:
    python manage.py run_crawl_tick
    python manage.py run_crawl_tick --target <uuid> --target <uuid>
    python manage.py run_crawl_tick --concurrency 2 --verbose
"""

import asyncio
import logging

from django.core.management.base import BaseCommand

from pagewatch.services.orchestrator import Orchestrator

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Run the orchestrator once over active targets."""

    help = 'Run one change-detection tick over active targets'

    def add_arguments(self, parser):
        parser.add_argument(
            '--target',
            action='append',
            dest='targets',
            help='Target UUID to process (repeatable; default: all active targets)',
        )
        parser.add_argument(
            '--concurrency',
            type=int,
            default=None,
            help='Targets processed in parallel (default: PAGEWATCH_MAX_CONCURRENCY)',
        )
        parser.add_argument(
            '--verbose',
            action='store_true',
            help='Print the outcome for each target',
        )

    def handle(self, *args, **options):
        targets = options['targets']
        verbose = options['verbose']

        orchestrator = Orchestrator(concurrency=options['concurrency'])
        summary = asyncio.run(orchestrator.run_tick(targets))

        if verbose:
            for outcome in summary.outcomes:
                line = f'  {outcome.target_id}: {outcome.status}'
                if outcome.reason:
                    line += f' ({outcome.reason})'
                self.stdout.write(line)

        counts = ', '.join(f'{key}={value}' for key, value in summary.to_dict().items())

        if summary.global_throttle:
            self.stdout.write(self.style.WARNING(f'Global throttle engaged, tick deferred: {counts}'))
        elif summary.errors or summary.failed:
            self.stdout.write(self.style.WARNING(f'Tick finished with problems: {counts}'))
        else:
            self.stdout.write(self.style.SUCCESS(f'Tick complete: {counts}'))
