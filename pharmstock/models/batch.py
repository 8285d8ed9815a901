"""
StockBatch model — a discrete lot of a product with one expiry date.

Stock is tracked as batches so it can be sold First-Expiry-First-Out:

    batch = StockBatch.objects.create(
        product=paracetamol,
        quantity=100,
        expiry_date=date(2027, 3, 1),
        batch_number="LOT-A17",
        source_reference="purchase:42",
    )

A batch whose quantity reaches zero is not deleted. It becomes a
tombstone (``is_depleted=True``) so a later return can still find it,
and is only removed by ``prune_depleted_batches``.
"""

from decimal import Decimal

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class StockBatchQuerySet(models.QuerySet):
    """Custom QuerySet for StockBatch with convenience filters."""

    def live(self):
        """Batches that have not been depleted (tombstones excluded)."""
        return self.filter(is_depleted=False)

    def depleted(self):
        """Tombstones: batches that reached zero."""
        return self.filter(is_depleted=True)

    def for_product(self, product):
        """Filter batches for a specific product (instance or pk)."""
        return self.filter(product_id=getattr(product, 'pk', product))


class StockBatch(models.Model):
    """
    One delivery (lot) of a product.

    Mutated only through BatchStore.adjust_quantity (allocation decrements,
    returns increment). quantity never goes below zero.
    """

    product = models.ForeignKey(
        'pharmstock.Product',
        on_delete=models.PROTECT,
        related_name='batches',
        verbose_name=_('Product'),
    )
    quantity = models.PositiveIntegerField(default=0, verbose_name=_('Quantity (units)'))

    # Null only for legacy data; such batches are never allocatable
    expiry_date = models.DateField(
        null=True,
        blank=True,
        db_index=True,
        verbose_name=_('Expiry date'),
    )
    cost_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        verbose_name=_('Unit cost'),
    )
    source_reference = models.CharField(
        max_length=100,
        blank=True,
        default='',
        verbose_name=_('Source'),
        help_text=_('What created this batch. Ex: "purchase:42", "MIGRATION", "adjustment"'),
    )
    date_received = models.DateTimeField(default=timezone.now, verbose_name=_('Received at'))
    batch_number = models.CharField(
        max_length=100,
        blank=True,
        default='',
        verbose_name=_('Lot number'),
    )

    # Tombstone
    is_depleted = models.BooleanField(default=False, db_index=True, verbose_name=_('Depleted'))
    depleted_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Depleted at'))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = StockBatchQuerySet.as_manager()

    class Meta:
        verbose_name = _('Stock batch')
        verbose_name_plural = _('Stock batches')
        ordering = ['expiry_date', 'pk']
        indexes = [
            models.Index(fields=['product', 'is_depleted', 'expiry_date'], name='pharmstock_batch_fefo_idx'),
            models.Index(fields=['is_depleted', 'depleted_at'], name='pharmstock_batch_gc_idx'),
        ]

    @property
    def batch_id(self) -> str:
        """Return batch identifier in standard format."""
        return f"batch:{self.pk}"

    def __str__(self) -> str:
        lot = self.batch_number or self.batch_id
        expiry = f" (exp:{self.expiry_date})" if self.expiry_date else ""
        return f"{self.product} {lot}{expiry}: {self.quantity}"
