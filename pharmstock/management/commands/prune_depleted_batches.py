"""
Management command to delete depleted batches past their retention period.

A depleted batch stays as a return target (cancelled sales, rollbacks)
until pruned; stock returned to a pruned batch is lost.

Usage:
    python manage.py prune_depleted_batches
    python manage.py prune_depleted_batches --days 90
    python manage.py prune_depleted_batches --dry-run
"""

from datetime import timedelta

from django.core.management.base import BaseCommand

from pharmstock import stock
from pharmstock.conf import pharmstock_settings


class Command(BaseCommand):
    """Prune depleted batches command."""

    help = 'Deletes depleted stock batches older than the retention period'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days',
            type=int,
            default=None,
            help='Retention in days (default: PHARMSTOCK["DEPLETED_RETENTION_DAYS"])'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be deleted without deleting'
        )

    def handle(self, *args, **options):
        days = options['days']
        if days is None:
            days = pharmstock_settings.DEPLETED_RETENTION_DAYS
        older_than = timedelta(days=days)

        if options['dry_run']:
            count = stock.depleted_before(older_than).count()
            self.stdout.write(f'{count} depleted batch(es) would be deleted')
        else:
            count = stock.prune_depleted(older_than)
            self.stdout.write(
                self.style.SUCCESS(f'{count} depleted batch(es) deleted')
            )
