"""
CashEntry model — cash register (shift) ledger rows written by checkout.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from pharmstock.models.enums import CashEntryKind


class CashEntry(models.Model):
    """Money in (sale) or out (refund) attributable to a sale."""

    kind = models.CharField(max_length=20, choices=CashEntryKind.choices, verbose_name=_('Kind'))
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        verbose_name=_('Amount'),
    )
    reason = models.CharField(max_length=255, blank=True, default='', verbose_name=_('Reason'))
    sale = models.ForeignKey(
        'pharmstock.Sale',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='cash_entries',
        verbose_name=_('Sale'),
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('User'),
    )
    timestamp = models.DateTimeField(default=timezone.now, db_index=True, verbose_name=_('Date/time'))

    class Meta:
        verbose_name = _('Cash entry')
        verbose_name_plural = _('Cash entries')
        ordering = ['-timestamp']

    def __str__(self) -> str:
        return f"{self.kind} {self.amount} | {self.reason}"
