"""
Tests for the admin review actions.
"""

import pytest
from django.contrib.admin.sites import site

from pharmstock import stock
from pharmstock.admin import StockMovementAdmin
from pharmstock.models import MovementStatus, StockBatch, StockMovement


pytestmark = pytest.mark.django_db


@pytest.fixture
def movement_admin(monkeypatch):
    model_admin = StockMovementAdmin(StockMovement, site)
    monkeypatch.setattr(model_admin, 'message_user', lambda *args, **kwargs: None)
    return model_admin


def test_approve_action_applies(movement_admin, ibuprofen, fefo_batches, clerk, pharmacist, rf):
    b1, _ = fefo_batches
    movement = stock.adjust(ibuprofen, -2, batch=b1, reason='Damaged', user=clerk)
    request = rf.post('/')
    request.user = pharmacist

    movement_admin.approve_movements(request, StockMovement.objects.all())

    movement.refresh_from_db()
    assert movement.status == MovementStatus.APPROVED
    assert StockBatch.objects.get(pk=b1.pk).quantity == 3


def test_reject_action_by_non_approver_is_skipped(movement_admin, ibuprofen, clerk, rf):
    movement = stock.log_movement(ibuprofen, 'adjustment', 4, user=clerk)
    request = rf.post('/')
    request.user = clerk

    assert movement_admin._review(request, StockMovement.objects.all(), stock.reject_movement) == 0

    movement.refresh_from_db()
    assert movement.is_pending


def test_admin_is_read_only(movement_admin, rf, pharmacist):
    request = rf.get('/')
    request.user = pharmacist

    assert not movement_admin.has_add_permission(request)
    assert not movement_admin.has_change_permission(request)
    assert not movement_admin.has_delete_permission(request)
