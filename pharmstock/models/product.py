"""
Product model — the sellable item whose stock is tracked in batches.
"""

from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _


class Product(models.Model):
    """
    Sellable product (drug, consumable).

    ``stock`` and ``earliest_expiry`` are denormalized from the product's
    live batches. They are only written by the stock services, never by hand:

        stock == sum(batch.quantity for batch in product.batches.live())
    """

    sku = models.SlugField(
        unique=True,
        max_length=64,
        verbose_name=_('SKU'),
    )
    name = models.CharField(max_length=200, verbose_name=_('Name'))
    units_per_pack = models.PositiveIntegerField(
        default=1,
        verbose_name=_('Units per pack'),
        help_text=_('Base units contained in one pack. Sales in packs are multiplied by this.'),
    )

    # Denormalized from batches (service-managed)
    stock = models.IntegerField(default=0, verbose_name=_('Stock (units)'))
    earliest_expiry = models.DateField(null=True, blank=True, verbose_name=_('Earliest expiry'))

    cost_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        verbose_name=_('Cost price'),
    )
    is_active = models.BooleanField(default=True, verbose_name=_('Active'))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Product')
        verbose_name_plural = _('Products')
        ordering = ['name']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(units_per_pack__gte=1),
                name='pharmstock_units_per_pack_gte_1',
            ),
        ]

    def to_base_units(self, quantity: int, is_base_unit: bool) -> int:
        """Convert a requested quantity (units or packs) into base units."""
        if is_base_unit:
            return quantity
        return quantity * (self.units_per_pack or 1)

    def __str__(self) -> str:
        return self.name
