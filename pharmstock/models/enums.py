"""
Enums for Pharmstock models.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class MovementType(models.TextChoices):
    """
    Kind of stock-affecting event.

    Sign convention lives in StockMovement.quantity (positive = in,
    negative = out); the type only says why.
    """
    INITIAL = 'initial', _('Initial stock')
    SALE = 'sale', _('Sale')
    PURCHASE = 'purchase', _('Purchase')
    RETURN_CUSTOMER = 'return_customer', _('Customer return')
    RETURN_SUPPLIER = 'return_supplier', _('Return to supplier')
    ADJUSTMENT = 'adjustment', _('Adjustment')
    DAMAGE = 'damage', _('Damaged / expired')
    TRANSFER_IN = 'transfer_in', _('Transfer in')
    TRANSFER_OUT = 'transfer_out', _('Transfer out')
    CORRECTION = 'correction', _('Correction')


class MovementStatus(models.TextChoices):
    """Approval workflow status of a movement."""
    PENDING = 'pending', _('Pending')     # Logged, stock not touched yet
    APPROVED = 'approved', _('Approved')  # Stock change realized
    REJECTED = 'rejected', _('Rejected')  # Never applied


class SaleStatus(models.TextChoices):
    """Sale lifecycle status."""
    COMPLETED = 'completed', _('Completed')
    PENDING = 'pending', _('Pending')       # Deferred (delivery) order
    CANCELLED = 'cancelled', _('Cancelled')


class SaleType(models.TextChoices):
    WALK_IN = 'walk_in', _('Walk-in')
    DELIVERY = 'delivery', _('Delivery')


class PaymentMethod(models.TextChoices):
    CASH = 'cash', _('Cash')
    CARD = 'card', _('Card')


class CashEntryKind(models.TextChoices):
    """Cash register (shift) ledger entry kinds."""
    SALE = 'sale', _('Cash sale')
    CARD_SALE = 'card_sale', _('Card sale')
    REFUND = 'refund', _('Refund')
