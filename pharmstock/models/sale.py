"""
Sale models — the record produced by a committed checkout.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from pharmstock.models.enums import PaymentMethod, SaleStatus, SaleType


class Sale(models.Model):
    """
    A committed sale.

    Only created by SaleTransactionCoordinator after every line has been
    allocated. A sale never exists without its allocations.
    """

    number = models.PositiveIntegerField(unique=True, verbose_name=_('Number'))
    created_at = models.DateTimeField(default=timezone.now, db_index=True, verbose_name=_('Date/time'))
    status = models.CharField(
        max_length=20,
        choices=SaleStatus.choices,
        default=SaleStatus.COMPLETED,
        db_index=True,
        verbose_name=_('Status'),
    )
    sale_type = models.CharField(
        max_length=20,
        choices=SaleType.choices,
        default=SaleType.WALK_IN,
        verbose_name=_('Type'),
    )
    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.CASH,
        verbose_name=_('Payment method'),
    )
    total = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        verbose_name=_('Total'),
    )
    customer_name = models.CharField(max_length=200, blank=True, default='', verbose_name=_('Customer'))
    sold_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Sold by'),
    )
    cancelled_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Cancelled at'))
    returned_total = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        verbose_name=_('Returned'),
        help_text=_('Value of items the customer brought back'),
    )

    class Meta:
        verbose_name = _('Sale')
        verbose_name_plural = _('Sales')
        ordering = ['-number']

    @property
    def sale_id(self) -> str:
        return f"sale:{self.number}"

    @property
    def net_total(self) -> Decimal:
        return self.total - self.returned_total

    def __str__(self) -> str:
        return f"#{self.number} {self.total} [{self.status}]"


class SaleLine(models.Model):
    """
    One line of a sale, carrying the batch allocations it consumed.

    ``allocations`` holds BatchAllocation dicts:
        [{"batch_id": 12, "quantity": 5, "expiry_date": "2027-01-01"}, ...]
    """

    sale = models.ForeignKey(
        Sale,
        on_delete=models.CASCADE,
        related_name='lines',
        verbose_name=_('Sale'),
    )
    position = models.PositiveIntegerField(default=0, verbose_name=_('Line'))
    product = models.ForeignKey(
        'pharmstock.Product',
        on_delete=models.PROTECT,
        related_name='+',
        verbose_name=_('Product'),
    )
    quantity = models.PositiveIntegerField(verbose_name=_('Quantity'))
    is_base_unit = models.BooleanField(default=False, verbose_name=_('Sold in units'))
    units = models.PositiveIntegerField(verbose_name=_('Base units'))
    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        verbose_name=_('Unit price'),
    )
    allocations = models.JSONField(default=list, blank=True, verbose_name=_('Batch allocations'))
    returned_quantity = models.PositiveIntegerField(
        default=0,
        verbose_name=_('Returned'),
        help_text=_('Same unit as quantity (packs or base units)'),
    )

    class Meta:
        verbose_name = _('Sale line')
        verbose_name_plural = _('Sale lines')
        ordering = ['sale', 'position']

    def __str__(self) -> str:
        unit = 'u' if self.is_base_unit else 'pk'
        return f"{self.quantity}{unit} {self.product}"

    @property
    def units_per_quantity(self) -> int:
        return self.units // self.quantity if self.quantity else 1

    @property
    def returnable_quantity(self) -> int:
        return self.quantity - self.returned_quantity

    @property
    def returned_units(self) -> int:
        return self.returned_quantity * self.units_per_quantity


class SaleSequence(models.Model):
    """
    Single-row counter handing out sale numbers.

    Locked with select_for_update() while a number is taken, so two
    checkouts on different products still get different numbers.
    """

    last_number = models.PositiveIntegerField(default=0, verbose_name=_('Last number'))

    class Meta:
        verbose_name = _('Sale sequence')
        verbose_name_plural = _('Sale sequence')

    def __str__(self) -> str:
        return f"sale:{self.last_number}"
