"""
Management command to move legacy flat stock into batches.

Products with stock but no batch get a single "MIGRATED" batch holding
their whole stock, expiring at the product's earliest expiry.

Usage:
    python manage.py migrate_flat_stock
    python manage.py migrate_flat_stock --dry-run
"""

from django.core.management.base import BaseCommand

from pharmstock import stock
from pharmstock.models import Product


class Command(BaseCommand):
    """Migrate flat stock command."""

    help = 'Creates batches for products that only have flat stock'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be migrated without migrating'
        )

    def handle(self, *args, **options):
        pending = Product.objects.filter(stock__gt=0, batches__isnull=True)

        if options['dry_run']:
            for product in pending:
                self.stdout.write(f'{product}: {product.stock} unit(s)')
            self.stdout.write(f'{pending.count()} product(s) would be migrated')
        else:
            count = stock.migrate_flat_stock(pending)
            self.stdout.write(
                self.style.SUCCESS(f'{count} product(s) migrated')
            )
