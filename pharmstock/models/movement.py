"""
StockMovement model — append-only audit ledger of stock changes.
"""

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from pharmstock.models.enums import MovementStatus, MovementType


class StockMovement(models.Model):
    """
    Immutable record of an event that changes (or proposes to change) stock.

    Rules:
    - NEVER delete()
    - Only the workflow fields change after creation, and only once
      (pending → approved, or pending → rejected)
    - A pending movement has NOT been applied to any batch yet

    LIFECYCLE:

        ┌─────────┐   approve()   ┌──────────┐
        │ PENDING │ ────────────► │ APPROVED │  (stock change applied)
        └─────────┘               └──────────┘
             │
             │ reject()           ┌──────────┐
             └──────────────────► │ REJECTED │  (never applied)
                                  └──────────┘
    """

    WORKFLOW_FIELDS = frozenset({'status', 'reviewed_by', 'reviewed_at'})

    product = models.ForeignKey(
        'pharmstock.Product',
        on_delete=models.PROTECT,
        related_name='movements',
        verbose_name=_('Product'),
    )
    product_name = models.CharField(max_length=200, verbose_name=_('Product name'))

    movement_type = models.CharField(
        max_length=20,
        choices=MovementType.choices,
        db_index=True,
        verbose_name=_('Type'),
    )
    quantity = models.IntegerField(
        verbose_name=_('Quantity'),
        help_text=_('Signed delta in base units. Positive = in, negative = out'),
    )
    previous_stock = models.IntegerField(default=0, verbose_name=_('Stock before'))
    new_stock = models.IntegerField(default=0, verbose_name=_('Stock after'))

    reason = models.CharField(max_length=255, blank=True, default='', verbose_name=_('Reason'))
    notes = models.TextField(blank=True, default='', verbose_name=_('Notes'))

    reference = models.CharField(
        max_length=100,
        blank=True,
        default='',
        verbose_name=_('Reference'),
        help_text=_('Sale, purchase or return this movement belongs to. Ex: "sale:100001"'),
    )
    transaction_id = models.CharField(
        max_length=64,
        blank=True,
        default='',
        db_index=True,
        verbose_name=_('Transaction'),
        help_text=_('Groups movements created together'),
    )
    batch = models.ForeignKey(
        'pharmstock.StockBatch',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='movements',
        verbose_name=_('Batch'),
    )
    expiry_date = models.DateField(null=True, blank=True, verbose_name=_('Expiry snapshot'))

    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Performed by'),
    )
    performed_by_name = models.CharField(max_length=150, blank=True, default='')
    timestamp = models.DateTimeField(default=timezone.now, db_index=True, verbose_name=_('Date/time'))

    # Approval workflow
    status = models.CharField(
        max_length=20,
        choices=MovementStatus.choices,
        default=MovementStatus.PENDING,
        db_index=True,
        verbose_name=_('Status'),
    )
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Reviewed by'),
    )
    reviewed_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Reviewed at'))

    class Meta:
        verbose_name = _('Stock movement')
        verbose_name_plural = _('Stock movements')
        ordering = ['-timestamp', '-pk']
        indexes = [
            models.Index(fields=['product', 'timestamp'], name='pharmstock_move_product_idx'),
            models.Index(fields=['status', 'timestamp'], name='pharmstock_move_status_idx'),
        ]

    def save(self, *args, **kwargs):
        """Create once; afterwards only the workflow fields may be saved."""
        if not self._state.adding:
            update_fields = kwargs.get('update_fields')
            if not update_fields or not set(update_fields) <= self.WORKFLOW_FIELDS:
                raise ValueError(
                    "Stock movements are immutable. "
                    "To correct one, log a new movement with the inverse quantity."
                )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        """Prevent deletion — the ledger is append-only."""
        raise ValueError(
            "Stock movements are immutable. "
            "To reverse one, log a new movement with the inverse quantity."
        )

    @property
    def is_pending(self) -> bool:
        return self.status == MovementStatus.PENDING

    @property
    def movement_id(self) -> str:
        return f"movement:{self.pk}"

    def __str__(self) -> str:
        sign = '+' if self.quantity > 0 else ''
        return f"{sign}{self.quantity} {self.product_name} | {self.movement_type} [{self.status}]"
