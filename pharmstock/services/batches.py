"""
Batch store — data operations on stock batches.

No policy lives here: callers decide what to allocate, when to refresh
product aggregates and what to log. Every mutation runs under
transaction.atomic() with the affected row locked.
"""

import logging
from datetime import date, timedelta

from django.db import transaction
from django.db.models import IntegerField, Min, Sum
from django.db.models.functions import Coalesce

from pharmstock import clock
from pharmstock.conf import pharmstock_settings
from pharmstock.exceptions import StockError
from pharmstock.models.batch import StockBatch
from pharmstock.models.product import Product

logger = logging.getLogger('pharmstock')


class BatchStore:
    """Create, query and mutate stock batches."""

    # ══════════════════════════════════════════════════════════════
    # QUERIES
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def list_batches(cls, product=None, include_depleted: bool = False) -> list[StockBatch]:
        """
        All batches, or all batches of one product.

        Expired and empty batches are NOT filtered out; only tombstones are,
        unless ``include_depleted`` is set.
        """
        qs = StockBatch.objects.all()
        if product is not None:
            qs = qs.for_product(product)
        if not include_depleted:
            qs = qs.live()
        return list(qs.order_by('expiry_date', 'pk'))

    @classmethod
    def get_batch(cls, batch_id) -> StockBatch | None:
        """Batch by pk or "batch:{pk}" (tombstones included)."""
        pk = cls._parse_batch_id(batch_id)
        if pk is None:
            return None
        return StockBatch.objects.filter(pk=pk).first()

    @classmethod
    def get_product(cls, product) -> Product:
        """
        Product by instance or pk.

        Raises:
            StockError('PRODUCT_NOT_FOUND'): If the product does not exist
        """
        pk = getattr(product, 'pk', product)
        found = Product.objects.filter(pk=pk).first()
        if found is None:
            raise StockError('PRODUCT_NOT_FOUND', product=str(product))
        return found

    @classmethod
    def total_stock(cls, product) -> int:
        """Sum of quantities across the product's live batches."""
        return StockBatch.objects.for_product(product).live().aggregate(
            t=Coalesce(Sum('quantity'), 0, output_field=IntegerField())
        )['t']

    @classmethod
    def earliest_expiry(cls, product) -> date | None:
        """Minimum expiry among the product's batches with quantity > 0."""
        return StockBatch.objects.for_product(product).live().filter(
            quantity__gt=0,
        ).aggregate(e=Min('expiry_date'))['e']

    @classmethod
    def has_stock(cls, product, quantity: int) -> bool:
        """Is the batch total at least ``quantity``?"""
        return cls.total_stock(product) >= quantity

    @classmethod
    def stock_summary(cls, product) -> dict:
        """
        Stock overview for display.

        Returns:
            {"total_stock", "batch_count", "earliest_expiry", "batches"}
            with batches in FEFO order (empty batches left out).
        """
        batches = [b for b in cls.list_batches(product) if b.quantity > 0]
        return {
            'total_stock': sum(b.quantity for b in batches),
            'batch_count': len(batches),
            'earliest_expiry': cls.earliest_expiry(product),
            'batches': batches,
        }

    # ══════════════════════════════════════════════════════════════
    # MUTATIONS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def create_batch(cls, product, quantity: int, expiry_date: date | None = None,
                     cost_price=None, source_reference: str = '', batch_number: str = '',
                     date_received=None) -> StockBatch:
        """
        Create a new batch for ``product``.

        Raises:
            StockError('INVALID_QUANTITY'): If quantity is not a positive integer
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise StockError('INVALID_QUANTITY', requested=quantity)

        fields = {
            'product': product,
            'quantity': quantity,
            'expiry_date': expiry_date,
            'source_reference': source_reference,
            'batch_number': batch_number,
            'date_received': date_received or clock.now(),
        }
        if cost_price is not None:
            fields['cost_price'] = cost_price
        batch = StockBatch.objects.create(**fields)

        logger.info(
            "stock.batch.create",
            extra={
                "product": str(product),
                "batch_id": batch.pk,
                "qty": quantity,
                "expiry": str(expiry_date),
                "source": source_reference,
            },
        )
        return batch

    @classmethod
    def adjust_quantity(cls, batch_id, delta: int) -> StockBatch | None:
        """
        Add ``delta`` to a batch quantity, clamped at 0.

        When the result is exactly 0 the batch is tombstoned (dropped from
        every live query) and its final state is returned. A positive delta
        on a tombstone revives it.

        Returns:
            The batch, or None if no such batch exists

        Concurrency:
            - Runs under transaction.atomic()
            - Uses select_for_update() on the batch
        """
        pk = cls._parse_batch_id(batch_id)
        if pk is None:
            return None

        with transaction.atomic():
            batch = StockBatch.objects.select_for_update().filter(pk=pk).first()
            if batch is None:
                return None

            old = batch.quantity
            batch.quantity = max(0, old + delta)

            if batch.quantity == 0:
                if not batch.is_depleted:
                    batch.is_depleted = True
                    batch.depleted_at = clock.now()
            elif batch.is_depleted:
                batch.is_depleted = False
                batch.depleted_at = None

            batch.save(update_fields=['quantity', 'is_depleted', 'depleted_at', 'updated_at'])

        logger.debug(
            "stock.batch.adjust",
            extra={
                "batch_id": pk,
                "delta": delta,
                "old": old,
                "new": batch.quantity,
                "depleted": batch.is_depleted,
            },
        )
        return batch

    @classmethod
    def refresh_product(cls, product) -> Product:
        """
        Re-derive ``stock`` and ``earliest_expiry`` from the product's batches.

        Call with the product row locked (inside the caller's transaction).
        """
        product.stock = cls.total_stock(product)
        product.earliest_expiry = cls.earliest_expiry(product)
        product.save(update_fields=['stock', 'earliest_expiry', 'updated_at'])
        return product

    @classmethod
    def lock_product(cls, product) -> Product:
        """
        Lock and return the product row. Must run inside transaction.atomic().

        This is the per-product serialization point: every read-modify-write
        on a product's batches takes this lock first.

        Raises:
            StockError('PRODUCT_NOT_FOUND'): If the product does not exist
        """
        pk = getattr(product, 'pk', product)
        locked = Product.objects.select_for_update().filter(pk=pk).first()
        if locked is None:
            raise StockError('PRODUCT_NOT_FOUND', product=str(product))
        return locked

    # ══════════════════════════════════════════════════════════════
    # GARBAGE COLLECTION
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def depleted_before(cls, older_than: timedelta | None = None):
        """Tombstones depleted before the retention horizon."""
        if older_than is None:
            older_than = timedelta(days=pharmstock_settings.DEPLETED_RETENTION_DAYS)
        cutoff = clock.now() - older_than
        return StockBatch.objects.depleted().filter(quantity=0, depleted_at__lt=cutoff)

    @classmethod
    def prune_depleted(cls, older_than: timedelta | None = None) -> int:
        """
        Physically delete tombstones older than the retention horizon.

        After this, returns against the pruned batches are lost (logged).

        Returns:
            Number of batches deleted

        Usage:
            Run periodically via cron (see ``prune_depleted_batches``).
        """
        with transaction.atomic():
            pks = list(
                cls.depleted_before(older_than).select_for_update(skip_locked=True)
                .values_list('pk', flat=True)
            )
            count, _ = StockBatch.objects.filter(pk__in=pks).delete()

        if count:
            logger.info("stock.batch.prune", extra={"count": count})
        return count

    # ══════════════════════════════════════════════════════════════
    # INTERNALS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def _parse_batch_id(cls, batch_id) -> int | None:
        """Extract PK from an int, a StockBatch or "batch:{pk}"."""
        if isinstance(batch_id, StockBatch):
            return batch_id.pk
        if isinstance(batch_id, int) and not isinstance(batch_id, bool):
            return batch_id
        if isinstance(batch_id, str):
            raw = batch_id.split(':', 1)[1] if batch_id.startswith('batch:') else batch_id
            try:
                return int(raw)
            except ValueError:
                pass
        return None
