"""
Tests for the movement ledger and its approval workflow.
"""

from datetime import datetime, timedelta, timezone

import pytest
from django.test import override_settings

from pharmstock import stock, StockError
from pharmstock.models import MovementStatus, MovementType, StockBatch, StockMovement


pytestmark = pytest.mark.django_db


class TestLogMovement:
    """Tests for stock.log_movement()."""

    def test_approver_gets_approved(self, ibuprofen, fefo_batches, pharmacist):
        movement = stock.log_movement(ibuprofen, MovementType.DAMAGE, -2, user=pharmacist)

        assert movement.status == MovementStatus.APPROVED
        assert movement.performed_by_name == 'Amina Haddad'

    def test_non_approver_gets_pending(self, ibuprofen, fefo_batches, clerk):
        movement = stock.log_movement(ibuprofen, MovementType.DAMAGE, -2, user=clerk)

        assert movement.status == MovementStatus.PENDING
        assert movement.performed_by_name == 'clerk'

    def test_no_actor_is_not_an_approver(self, ibuprofen, fefo_batches):
        movement = stock.log_movement(ibuprofen, MovementType.CORRECTION, 1)

        assert movement.status == MovementStatus.PENDING
        assert movement.performed_by_name == ''

    def test_applied_is_approved(self, ibuprofen, fefo_batches):
        movement = stock.log_movement(ibuprofen, MovementType.SALE, -3, applied=True)

        assert movement.status == MovementStatus.APPROVED

    def test_snapshots_stock_and_time(self, ibuprofen, fefo_batches):
        movement = stock.log_movement(ibuprofen, MovementType.DAMAGE, -4)

        assert movement.product_name == 'Ibuprofen 400mg'
        assert movement.previous_stock == 15
        assert movement.new_stock == 11
        assert movement.timestamp == datetime(2024, 12, 1, 12, 0, tzinfo=timezone.utc)

    def test_never_touches_batches(self, ibuprofen, fefo_batches, pharmacist):
        b1, _ = fefo_batches

        stock.log_movement(ibuprofen, MovementType.DAMAGE, -5, user=pharmacist, batch=b1)

        assert StockBatch.objects.get(pk=b1.pk).quantity == 5

    def test_unknown_type(self, ibuprofen):
        with pytest.raises(StockError) as exc:
            stock.log_movement(ibuprofen, 'theft', -1)

        assert exc.value.code == 'INVALID_MOVEMENT_TYPE'

    def test_zero_quantity(self, ibuprofen):
        with pytest.raises(StockError) as exc:
            stock.log_movement(ibuprofen, MovementType.ADJUSTMENT, 0)

        assert exc.value.code == 'INVALID_QUANTITY'

    @override_settings(PHARMSTOCK={
        'CLOCK': 'pharmstock.tests.clocks.frozen_now',
        'PERMISSION_CHECKER': 'pharmstock.adapters.noop.AllowAllPermissionChecker',
    })
    def test_permission_checker_is_pluggable(self, ibuprofen, clerk):
        movement = stock.log_movement(ibuprofen, MovementType.ADJUSTMENT, 1, user=clerk)

        assert movement.status == MovementStatus.APPROVED

    @override_settings(PHARMSTOCK={
        'CLOCK': 'pharmstock.tests.clocks.frozen_now',
        'PERMISSION_CHECKER': 'pharmstock.adapters.noop.DenyAllPermissionChecker',
    })
    def test_deny_all_keeps_everything_pending(self, ibuprofen, pharmacist):
        movement = stock.log_movement(ibuprofen, MovementType.ADJUSTMENT, 1, user=pharmacist)

        assert movement.status == MovementStatus.PENDING

    def test_clerk_with_permission_approves(self, ibuprofen, clerk):
        from django.contrib.auth.models import Permission

        clerk.user_permissions.add(Permission.objects.get(codename='change_stockmovement'))
        clerk = type(clerk).objects.get(pk=clerk.pk)  # drop permission cache

        movement = stock.log_movement(ibuprofen, MovementType.ADJUSTMENT, 1, user=clerk)

        assert movement.status == MovementStatus.APPROVED


class TestImmutability:
    """Movements are append-only."""

    def test_cannot_edit(self, ibuprofen):
        movement = stock.log_movement(ibuprofen, MovementType.ADJUSTMENT, 1)
        movement.quantity = 100

        with pytest.raises(ValueError):
            movement.save()

    def test_cannot_delete(self, ibuprofen):
        movement = stock.log_movement(ibuprofen, MovementType.ADJUSTMENT, 1)

        with pytest.raises(ValueError):
            movement.delete()


class TestReview:
    """Tests for stock.approve_movement() / stock.reject_movement()."""

    def test_pending_is_not_applied_until_approved(self, ibuprofen, fefo_batches, clerk, pharmacist):
        b1, _ = fefo_batches

        movement = stock.adjust(ibuprofen, -3, batch=b1, reason='Broken blister', user=clerk)

        assert movement.status == MovementStatus.PENDING
        assert StockBatch.objects.get(pk=b1.pk).quantity == 5

        movement = stock.approve_movement(movement.pk, pharmacist)

        assert movement.status == MovementStatus.APPROVED
        assert movement.reviewed_by == pharmacist
        assert movement.reviewed_at is not None
        assert StockBatch.objects.get(pk=b1.pk).quantity == 2
        ibuprofen.refresh_from_db()
        assert ibuprofen.stock == 12

    def test_reject_never_applies(self, ibuprofen, fefo_batches, clerk, pharmacist):
        b1, _ = fefo_batches
        movement = stock.adjust(ibuprofen, -3, batch=b1, reason='Miscount', user=clerk)

        movement = stock.reject_movement(movement.movement_id, pharmacist)

        assert movement.status == MovementStatus.REJECTED
        assert StockBatch.objects.get(pk=b1.pk).quantity == 5

    def test_transition_only_once(self, ibuprofen, fefo_batches, clerk, pharmacist):
        movement = stock.adjust(ibuprofen, -1, reason='Miscount', user=clerk)
        stock.approve_movement(movement.pk, pharmacist)

        with pytest.raises(StockError) as exc:
            stock.approve_movement(movement.pk, pharmacist)
        assert exc.value.code == 'INVALID_STATUS'

        with pytest.raises(StockError) as exc:
            stock.reject_movement(movement.pk, pharmacist)
        assert exc.value.code == 'INVALID_STATUS'

    def test_reviewer_needs_permission(self, ibuprofen, fefo_batches, clerk):
        movement = stock.adjust(ibuprofen, -1, reason='Miscount', user=clerk)

        with pytest.raises(StockError) as exc:
            stock.approve_movement(movement.pk, clerk)

        assert exc.value.code == 'PERMISSION_DENIED'
        movement.refresh_from_db()
        assert movement.is_pending

    def test_unknown_movement(self, pharmacist):
        with pytest.raises(StockError) as exc:
            stock.approve_movement(999999, pharmacist)

        assert exc.value.code == 'MOVEMENT_NOT_FOUND'

    def test_failed_apply_keeps_pending(self, ibuprofen, fefo_batches, clerk, pharmacist):
        """Approving a removal larger than what's left fails and changes nothing."""
        b1, b2 = fefo_batches
        movement = stock.adjust(ibuprofen, -15, reason='Expired shelf', user=clerk)
        stock.allocate(ibuprofen, 5)

        with pytest.raises(StockError) as exc:
            stock.approve_movement(movement.pk, pharmacist)

        assert exc.value.code == 'INSUFFICIENT_STOCK'
        movement.refresh_from_db()
        assert movement.is_pending
        assert stock.total_stock(ibuprofen) == 10


class TestHistory:
    """Tests for stock.get_history()."""

    def test_newest_first_with_filters(self, ibuprofen, paracetamol, clerk, pharmacist, set_clock):
        base = datetime(2024, 12, 1, 9, 0, tzinfo=timezone.utc)
        created = []
        for hours, (product, kind, user) in enumerate([
            (ibuprofen, MovementType.ADJUSTMENT, clerk),
            (paracetamol, MovementType.DAMAGE, pharmacist),
            (ibuprofen, MovementType.DAMAGE, pharmacist),
        ]):
            set_clock(base + timedelta(hours=hours))
            created.append(stock.log_movement(product, kind, -1, user=user))

        assert list(stock.get_history()) == created[::-1]
        assert list(stock.get_history(product=ibuprofen)) == [created[2], created[0]]
        assert list(stock.get_history(movement_type=MovementType.DAMAGE)) == [created[2], created[1]]
        assert list(stock.get_history(performed_by=clerk)) == [created[0]]
        assert list(stock.get_history(status=MovementStatus.PENDING)) == [created[0]]
        assert list(stock.get_history(
            start=base + timedelta(minutes=30),
            end=base + timedelta(hours=1),
        )) == [created[1]]

    def test_pending_movements(self, ibuprofen, clerk, pharmacist):
        pending = stock.log_movement(ibuprofen, MovementType.ADJUSTMENT, 2, user=clerk)
        stock.log_movement(ibuprofen, MovementType.ADJUSTMENT, 2, user=pharmacist)

        assert list(stock.pending_movements()) == [pending]
        assert StockMovement.objects.count() == 2
