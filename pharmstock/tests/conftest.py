"""
Pytest fixtures for Pharmstock tests.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model

from pharmstock.adapters import reset_permission_checker
from pharmstock.models import Product, StockBatch
from pharmstock.tests import clocks


User = get_user_model()


@pytest.fixture(autouse=True)
def _fresh_permission_checker():
    """Each test resolves the checker from its own settings."""
    reset_permission_checker()
    yield
    reset_permission_checker()


@pytest.fixture
def today():
    """The frozen clock's date (2024-12-01)."""
    return clocks.CURRENT.date()


@pytest.fixture
def set_clock(monkeypatch):
    """Move the frozen clock: set_clock(datetime)."""
    def _set(value):
        monkeypatch.setattr(clocks, 'CURRENT', value)
    return _set


@pytest.fixture
def pharmacist(db):
    """Superuser: may approve adjustments."""
    return User.objects.create_superuser(
        username='pharmacist',
        password='testpass123',
        first_name='Amina',
        last_name='Haddad',
    )


@pytest.fixture
def clerk(db):
    """Regular staff without approval rights."""
    return User.objects.create_user(
        username='clerk',
        password='testpass123',
    )


@pytest.fixture
def paracetamol(db):
    """Product sold in packs of 20 tablets."""
    return Product.objects.create(
        sku='paracetamol-500',
        name='Paracetamol 500mg',
        units_per_pack=20,
        cost_price=Decimal('0.10'),
    )


@pytest.fixture
def ibuprofen(db):
    """Product sold by the unit."""
    return Product.objects.create(
        sku='ibuprofen-400',
        name='Ibuprofen 400mg',
        units_per_pack=1,
    )


def _add_batch(product, quantity, expiry, batch_number=''):
    """Create a batch directly and keep the product aggregates in sync."""
    from pharmstock import stock

    batch = StockBatch.objects.create(
        product=product,
        quantity=quantity,
        expiry_date=expiry,
        batch_number=batch_number,
    )
    stock.refresh_product(product)
    return batch


@pytest.fixture
def make_batch(db):
    """Batch factory: make_batch(product, quantity, expiry, batch_number='')."""
    return _add_batch


@pytest.fixture
def fefo_batches(ibuprofen):
    """B1 (2025-01-01, 5 units) and B2 (2025-06-01, 10 units)."""
    b1 = _add_batch(ibuprofen, 5, date(2025, 1, 1), 'B1')
    b2 = _add_batch(ibuprofen, 10, date(2025, 6, 1), 'B2')
    return b1, b2


@pytest.fixture
def stocked_paracetamol(paracetamol, today):
    """Paracetamol with 3 packs (60 tablets) across two batches."""
    _add_batch(paracetamol, 20, today + timedelta(days=30), 'P1')
    _add_batch(paracetamol, 40, today + timedelta(days=365), 'P2')
    paracetamol.refresh_from_db()
    return paracetamol
