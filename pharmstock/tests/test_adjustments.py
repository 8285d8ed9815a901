"""
Tests for receiving, manual adjustments and flat stock migration.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from pharmstock import stock, StockError
from pharmstock.models import MovementStatus, MovementType, Product, StockBatch, StockMovement


pytestmark = pytest.mark.django_db


class TestReceive:
    """Tests for stock.receive()."""

    def test_receive_creates_batch_and_movement(self, ibuprofen, pharmacist):
        batch = stock.receive(
            ibuprofen, 100, date(2026, 5, 1),
            cost_price=Decimal('0.08'), batch_number='L-77',
            source_reference='purchase:12', user=pharmacist,
        )

        assert batch.quantity == 100
        assert batch.batch_number == 'L-77'
        ibuprofen.refresh_from_db()
        assert ibuprofen.stock == 100
        assert ibuprofen.earliest_expiry == date(2026, 5, 1)

        movement = StockMovement.objects.get()
        assert movement.movement_type == MovementType.PURCHASE
        assert movement.quantity == 100
        assert movement.previous_stock == 0
        assert movement.new_stock == 100
        assert movement.batch == batch
        assert movement.status == MovementStatus.APPROVED

    def test_receive_by_anyone_is_applied(self, ibuprofen, clerk):
        stock.receive(ibuprofen, 10, date(2026, 5, 1), user=clerk)

        assert StockMovement.objects.get().status == MovementStatus.APPROVED

    def test_receive_requires_expiry(self, ibuprofen):
        with pytest.raises(StockError) as exc:
            stock.receive(ibuprofen, 10, None)

        assert exc.value.code == 'EXPIRY_REQUIRED'
        assert not StockBatch.objects.exists()


class TestAdjust:
    """Tests for stock.adjust()."""

    def test_reason_required(self, ibuprofen, fefo_batches, pharmacist):
        with pytest.raises(StockError) as exc:
            stock.adjust(ibuprofen, -1, reason='', user=pharmacist)

        assert exc.value.code == 'REASON_REQUIRED'
        assert not StockMovement.objects.exists()

    def test_zero_rejected(self, ibuprofen, pharmacist):
        with pytest.raises(StockError) as exc:
            stock.adjust(ibuprofen, 0, reason='Count', user=pharmacist)

        assert exc.value.code == 'INVALID_QUANTITY'

    def test_approver_applies_immediately(self, ibuprofen, fefo_batches, pharmacist):
        _, b2 = fefo_batches

        movement = stock.adjust(
            ibuprofen, -4, batch=b2,
            movement_type=MovementType.DAMAGE, reason='Crushed box', user=pharmacist,
        )

        assert movement.status == MovementStatus.APPROVED
        assert movement.previous_stock == 15
        assert movement.new_stock == 11
        assert StockBatch.objects.get(pk=b2.pk).quantity == 6
        ibuprofen.refresh_from_db()
        assert ibuprofen.stock == 11

    def test_negative_without_batch_is_fefo(self, ibuprofen, fefo_batches, pharmacist):
        b1, b2 = fefo_batches

        stock.adjust(ibuprofen, -7, reason='Count', user=pharmacist)

        b1.refresh_from_db()
        b2.refresh_from_db()
        assert b1.is_depleted
        assert b2.quantity == 8

    def test_positive_without_batch_creates_batch(self, ibuprofen, pharmacist):
        movement = stock.adjust(
            ibuprofen, 12, reason='Found in back room', user=pharmacist,
            expiry_date=date(2026, 1, 1), batch_number='FOUND-1',
        )

        batch = StockBatch.objects.get()
        assert batch.quantity == 12
        assert batch.batch_number == 'FOUND-1'
        assert batch.source_reference == movement.movement_id
        ibuprofen.refresh_from_db()
        assert ibuprofen.stock == 12

    def test_positive_without_batch_needs_expiry(self, ibuprofen, pharmacist):
        with pytest.raises(StockError) as exc:
            stock.adjust(ibuprofen, 5, reason='Count', user=pharmacist)

        assert exc.value.code == 'EXPIRY_REQUIRED'

    def test_batch_of_other_product(self, ibuprofen, paracetamol, fefo_batches, pharmacist):
        b1, _ = fefo_batches

        with pytest.raises(StockError) as exc:
            stock.adjust(paracetamol, -1, batch=b1, reason='Count', user=pharmacist)

        assert exc.value.code == 'BATCH_NOT_FOUND'

    def test_pending_positive_creates_batch_on_approval(self, ibuprofen, clerk, pharmacist):
        movement = stock.adjust(
            ibuprofen, 6, reason='Transfer from branch', user=clerk,
            movement_type=MovementType.TRANSFER_IN, expiry_date=date(2026, 1, 1),
        )
        assert not StockBatch.objects.exists()

        stock.approve_movement(movement.pk, pharmacist)

        batch = StockBatch.objects.get()
        assert batch.quantity == 6
        assert batch.expiry_date == date(2026, 1, 1)
        assert batch.batch_number == 'TRANSFER_IN'

    def test_pruned_batch_becomes_new_batch_on_approval(self, ibuprofen, fefo_batches,
                                                        clerk, pharmacist, set_clock):
        b1, _ = fefo_batches
        stock.allocate(ibuprofen, 5)
        movement = stock.adjust(ibuprofen, 2, batch=b1, reason='Recount', user=clerk)

        set_clock(datetime(2025, 2, 1, tzinfo=timezone.utc))
        stock.prune_depleted()
        movement.refresh_from_db()
        assert movement.batch is None

        stock.approve_movement(movement.pk, pharmacist)

        batch = StockBatch.objects.get(source_reference=movement.movement_id)
        assert batch.quantity == 2
        assert batch.expiry_date == date(2025, 1, 1)
        assert stock.total_stock(ibuprofen) == 12


class TestMigrateFlatStock:
    """Tests for stock.migrate_flat_stock()."""

    def test_migrates_products_without_batches(self, db):
        legacy = Product.objects.create(
            sku='amoxicillin-500', name='Amoxicillin 500mg',
            stock=40, earliest_expiry=date(2025, 8, 1),
        )

        assert stock.migrate_flat_stock() == 1

        batch = StockBatch.objects.get(product=legacy)
        assert batch.quantity == 40
        assert batch.batch_number == 'MIGRATED'
        assert batch.source_reference == 'MIGRATION'
        assert batch.expiry_date == date(2025, 8, 1)

        movement = StockMovement.objects.get(product=legacy)
        assert movement.movement_type == MovementType.INITIAL
        assert movement.status == MovementStatus.APPROVED

        legacy.refresh_from_db()
        assert legacy.stock == 40

    def test_skips_products_with_batches(self, ibuprofen, fefo_batches):
        assert stock.migrate_flat_stock() == 0
        assert StockBatch.objects.count() == 2

    def test_is_idempotent(self, db):
        Product.objects.create(sku='zinc', name='Zinc', stock=5, earliest_expiry=date(2026, 1, 1))

        assert stock.migrate_flat_stock() == 1
        assert stock.migrate_flat_stock() == 0
        assert StockBatch.objects.count() == 1

    def test_unknown_expiry_is_not_sellable(self, db):
        legacy = Product.objects.create(sku='gauze', name='Gauze', stock=9)

        stock.migrate_flat_stock()

        with pytest.raises(StockError) as exc:
            stock.allocate(legacy, 1)
        assert exc.value.code == 'INSUFFICIENT_STOCK'
