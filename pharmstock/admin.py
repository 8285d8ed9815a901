"""
Pharmstock Admin.

Stock only changes through the Stock service, so everything that carries
quantities is read-only here:
- Product: editable catalog fields, stock aggregates read-only, batches inline
- StockBatch: read-only (tombstones visible through the filter)
- StockMovement: read-only ledger with approve/reject actions
- Sale: read-only with lines inline
- CashEntry / AuditEntry: read-only
"""

import logging

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from pharmstock.exceptions import StockError
from pharmstock.models import (
    AuditEntry,
    CashEntry,
    MovementStatus,
    Product,
    Sale,
    SaleLine,
    StockBatch,
    StockMovement,
)

logger = logging.getLogger(__name__)


class ReadOnlyAdminMixin:
    """No add/change/delete from the admin."""

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# =========================================================================
# PRODUCT ADMIN
# =========================================================================

class StockBatchInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = StockBatch
    fields = ['batch_number', 'quantity', 'expiry_date', 'source_reference', 'date_received']
    readonly_fields = fields
    extra = 0

    def get_queryset(self, request):
        return super().get_queryset(request).live()


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    """Product admin — catalog fields editable, stock derived from batches."""

    list_display = ['sku', 'name', 'units_per_pack', 'stock', 'earliest_expiry', 'is_active']
    list_filter = ['is_active']
    search_fields = ['sku', 'name']
    readonly_fields = ['stock', 'earliest_expiry', 'created_at', 'updated_at']
    inlines = [StockBatchInline]
    actions = ['migrate_flat_stock']

    @admin.action(description=_('Migrate flat stock to batches'))
    def migrate_flat_stock(self, request, queryset):
        from pharmstock import stock

        count = stock.migrate_flat_stock(queryset)
        self.message_user(request, _('{count} product(s) migrated.').format(count=count))


# =========================================================================
# BATCH ADMIN (read-only)
# =========================================================================

@admin.register(StockBatch)
class StockBatchAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Batch admin — read-only. Batches only change via Stock service."""

    list_display = ['batch_id', 'product', 'batch_number', 'quantity', 'expiry_date',
                    'is_depleted', 'date_received']
    list_filter = ['is_depleted', 'expiry_date']
    search_fields = ['batch_number', 'source_reference', 'product__sku', 'product__name']
    date_hierarchy = 'expiry_date'


# =========================================================================
# MOVEMENT ADMIN (read-only ledger with review actions)
# =========================================================================

@admin.register(StockMovement)
class StockMovementAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Movement admin — read-only. Review goes through the ledger."""

    list_display = ['timestamp', 'product_name', 'movement_type', 'quantity',
                    'previous_stock', 'new_stock', 'status', 'performed_by_name']
    list_filter = ['status', 'movement_type', 'timestamp']
    search_fields = ['product_name', 'reason', 'reference', 'transaction_id']
    date_hierarchy = 'timestamp'
    actions = ['approve_movements', 'reject_movements']

    @admin.action(description=_('Approve selected movements'))
    def approve_movements(self, request, queryset):
        from pharmstock import stock

        count = self._review(request, queryset, stock.approve_movement)
        self.message_user(request, _('{count} movement(s) approved.').format(count=count))

    @admin.action(description=_('Reject selected movements'))
    def reject_movements(self, request, queryset):
        from pharmstock import stock

        count = self._review(request, queryset, stock.reject_movement)
        self.message_user(request, _('{count} movement(s) rejected.').format(count=count))

    def _review(self, request, queryset, review):
        count = 0
        for movement in queryset.filter(status=MovementStatus.PENDING):
            try:
                review(movement.pk, request.user)
                count += 1
            except StockError as exc:
                logger.warning("review: movement %s not reviewed: %s", movement.movement_id, exc)
        return count


# =========================================================================
# SALE ADMIN (read-only)
# =========================================================================

class SaleLineInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = SaleLine
    fields = ['position', 'product', 'quantity', 'is_base_unit', 'units', 'unit_price', 'returned_quantity', 'allocations']
    readonly_fields = fields
    extra = 0


@admin.register(Sale)
class SaleAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ['number', 'created_at', 'status', 'sale_type', 'payment_method', 'total', 'returned_total', 'sold_by']
    list_filter = ['status', 'sale_type', 'payment_method']
    search_fields = ['number', 'customer_name']
    date_hierarchy = 'created_at'
    inlines = [SaleLineInline]


@admin.register(CashEntry)
class CashEntryAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ['timestamp', 'kind', 'amount', 'reason', 'user']
    list_filter = ['kind']
    date_hierarchy = 'timestamp'


@admin.register(AuditEntry)
class AuditEntryAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ['timestamp', 'action', 'summary', 'user']
    list_filter = ['action']
    search_fields = ['summary']
    date_hierarchy = 'timestamp'
