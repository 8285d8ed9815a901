"""
AuditEntry model — human-readable audit log of business events.
"""

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class AuditEntry(models.Model):
    """One summarized business event (sale completed, sale cancelled, ...)."""

    action = models.CharField(max_length=50, db_index=True, verbose_name=_('Action'))
    summary = models.CharField(max_length=255, verbose_name=_('Summary'))
    details = models.JSONField(default=dict, blank=True, verbose_name=_('Details'))
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
        verbose_name = _('Audit entry')
        verbose_name_plural = _('Audit entries')
        ordering = ['-timestamp']

    def __str__(self) -> str:
        return f"{self.action}: {self.summary}"
