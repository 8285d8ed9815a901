"""
Tests for the management commands.
"""

from datetime import date, datetime, timezone
from io import StringIO

import pytest
from django.core.management import call_command

from pharmstock import stock
from pharmstock.models import Product, StockBatch


pytestmark = pytest.mark.django_db


def run(*args):
    out = StringIO()
    call_command(*args, stdout=out)
    return out.getvalue()


class TestPruneDepletedBatches:

    def test_dry_run_keeps_batches(self, ibuprofen, fefo_batches, set_clock):
        stock.allocate(ibuprofen, 5)
        set_clock(datetime(2025, 3, 1, tzinfo=timezone.utc))

        output = run('prune_depleted_batches', '--dry-run')

        assert '1 depleted batch(es) would be deleted' in output
        assert StockBatch.objects.count() == 2

    def test_prune(self, ibuprofen, fefo_batches, set_clock):
        stock.allocate(ibuprofen, 5)
        set_clock(datetime(2025, 3, 1, tzinfo=timezone.utc))

        output = run('prune_depleted_batches')

        assert '1 depleted batch(es) deleted' in output
        assert StockBatch.objects.count() == 1

    def test_days_option(self, ibuprofen, fefo_batches, set_clock):
        stock.allocate(ibuprofen, 5)
        set_clock(datetime(2024, 12, 11, 12, 0, tzinfo=timezone.utc))

        assert '0 depleted' in run('prune_depleted_batches')
        assert '1 depleted' in run('prune_depleted_batches', '--days', '7')


class TestMigrateFlatStock:

    def test_dry_run(self, db):
        Product.objects.create(sku='cetirizine', name='Cetirizine 10mg', stock=30,
                               earliest_expiry=date(2026, 2, 1))

        output = run('migrate_flat_stock', '--dry-run')

        assert 'Cetirizine 10mg: 30 unit(s)' in output
        assert '1 product(s) would be migrated' in output
        assert not StockBatch.objects.exists()

    def test_migrate(self, db, ibuprofen, fefo_batches):
        Product.objects.create(sku='cetirizine', name='Cetirizine 10mg', stock=30,
                               earliest_expiry=date(2026, 2, 1))

        output = run('migrate_flat_stock')

        assert '1 product(s) migrated' in output
        assert StockBatch.objects.count() == 3
