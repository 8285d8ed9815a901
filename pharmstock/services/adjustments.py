"""
Stock adjustments — receiving, manual adjustments and legacy migration.

These are the flows that write the movement ledger first and let the
ledger status decide whether batches change now or on approval.
"""

import logging
from datetime import date

from django.db import transaction

from pharmstock.exceptions import StockError
from pharmstock.models.batch import StockBatch
from pharmstock.models.enums import MovementStatus, MovementType
from pharmstock.models.movement import StockMovement
from pharmstock.models.product import Product
from pharmstock.services.allocation import Allocator, validate_quantity
from pharmstock.services.batches import BatchStore
from pharmstock.services.ledger import MovementLedger

logger = logging.getLogger('pharmstock')


class StockAdjustments:
    """Ledger-first stock changes."""

    @classmethod
    def receive(cls, product, quantity: int, expiry_date: date, *, cost_price=None,
                batch_number: str = '', source_reference: str = '', user=None,
                reason: str = 'Purchase received') -> StockBatch:
        """
        Stock entry from a purchase.

        Creates a batch, logs an approved PURCHASE movement and refreshes
        the product aggregates.

        Raises:
            StockError('INVALID_QUANTITY'): If quantity is not a positive integer
            StockError('EXPIRY_REQUIRED'): If expiry_date is missing
        """
        validate_quantity(quantity)
        if expiry_date is None:
            raise StockError('EXPIRY_REQUIRED')

        with transaction.atomic():
            product = BatchStore.lock_product(product)
            previous = product.stock

            batch = BatchStore.create_batch(
                product,
                quantity,
                expiry_date=expiry_date,
                cost_price=cost_price,
                source_reference=source_reference,
                batch_number=batch_number,
            )
            BatchStore.refresh_product(product)

            MovementLedger.log_movement(
                product,
                MovementType.PURCHASE,
                quantity,
                user=user,
                batch=batch,
                reason=reason,
                reference=source_reference,
                expiry_date=expiry_date,
                applied=True,
                previous_stock=previous,
                new_stock=product.stock,
            )
            return batch

    @classmethod
    def adjust(cls, product, quantity: int, *, reason: str, user=None,
               movement_type: str = MovementType.ADJUSTMENT, batch=None,
               notes: str = '', expiry_date: date | None = None,
               batch_number: str = '') -> StockMovement:
        """
        Manual stock change (count correction, damage, transfer...).

        The movement is logged first. It is applied right away only if the
        ledger approved it (the actor may approve); otherwise it waits for
        MovementLedger.approve_movement().

        Args:
            quantity: Signed delta in base units
            batch: Batch to change. Without one, a positive delta creates a
                new batch (needs ``expiry_date``) and a negative delta is
                taken FEFO.
            batch_number: Lot label for a batch created by a positive delta
                without ``batch`` (kept as the movement reference).

        Raises:
            StockError('REASON_REQUIRED'): If reason is empty
            StockError('INVALID_QUANTITY'): If quantity is zero
            StockError('BATCH_NOT_FOUND'): If batch isn't one of product's batches
            StockError('EXPIRY_REQUIRED'): Positive delta without batch or expiry
        """
        if not reason:
            raise StockError('REASON_REQUIRED')
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity == 0:
            raise StockError('INVALID_QUANTITY', requested=quantity)

        with transaction.atomic():
            product = BatchStore.lock_product(product)

            if batch is not None:
                batch = BatchStore.get_batch(batch)
                if batch is None or batch.product_id != product.pk:
                    raise StockError('BATCH_NOT_FOUND', product=str(product))
                expiry_date = expiry_date or batch.expiry_date
            elif quantity > 0 and expiry_date is None:
                raise StockError('EXPIRY_REQUIRED')

            movement = MovementLedger.log_movement(
                product,
                movement_type,
                quantity,
                user=user,
                batch=batch,
                reason=reason,
                notes=notes,
                reference=batch_number,
                expiry_date=expiry_date,
            )

            if movement.status == MovementStatus.APPROVED:
                cls.apply_movement(movement)

            return movement

    @classmethod
    def apply_movement(cls, movement: StockMovement) -> Product:
        """
        Realize a movement's quantity on the batches.

        - With a batch: adjust that batch (clamped at zero)
        - Without a batch, positive: create a batch for the quantity
        - Without a batch, negative: take the quantity FEFO

        Then refresh the product aggregates.

        Raises:
            StockError('BATCH_NOT_FOUND'): The movement's batch is gone
            StockError('INSUFFICIENT_STOCK'): FEFO removal can't be covered
        """
        with transaction.atomic():
            product = BatchStore.lock_product(movement.product_id)

            if movement.batch_id is not None:
                if BatchStore.adjust_quantity(movement.batch_id, movement.quantity) is None:
                    raise StockError('BATCH_NOT_FOUND', batch_id=movement.batch_id)
            elif movement.quantity > 0:
                BatchStore.create_batch(
                    product,
                    movement.quantity,
                    expiry_date=movement.expiry_date,
                    source_reference=movement.movement_id,
                    batch_number=movement.reference or movement.movement_type.upper(),
                )
            else:
                Allocator.allocate(product, -movement.quantity, commit=True)

            BatchStore.refresh_product(product)

        logger.info(
            "stock.adjust.apply",
            extra={
                "movement_id": movement.pk,
                "product": str(product),
                "delta": movement.quantity,
                "stock": product.stock,
            },
        )
        return product

    @classmethod
    def migrate_flat_stock(cls, products=None) -> int:
        """
        Convert legacy flat stock into batches.

        Every product with ``stock > 0`` and no batch at all gets one
        "MIGRATED" batch holding its whole stock, expiring at its
        ``earliest_expiry`` (a product without one gets an unsellable
        batch until corrected).

        Returns:
            Number of products migrated
        """
        if products is None:
            products = Product.objects.filter(stock__gt=0)

        count = 0
        for product in products:
            with transaction.atomic():
                product = BatchStore.lock_product(product)
                if product.stock <= 0 or StockBatch.objects.for_product(product).exists():
                    continue

                flat_stock = product.stock
                batch = BatchStore.create_batch(
                    product,
                    flat_stock,
                    expiry_date=product.earliest_expiry,
                    cost_price=product.cost_price,
                    source_reference='MIGRATION',
                    batch_number='MIGRATED',
                )
                BatchStore.refresh_product(product)

                MovementLedger.log_movement(
                    product,
                    MovementType.INITIAL,
                    flat_stock,
                    batch=batch,
                    reason='Migrated from flat stock',
                    expiry_date=batch.expiry_date,
                    applied=True,
                    previous_stock=0,
                    new_stock=product.stock,
                )

                if batch.expiry_date is None:
                    logger.warning(
                        "stock.migrate.no_expiry",
                        extra={"product": str(product), "batch_id": batch.pk},
                    )
                count += 1

        logger.info("stock.migrate", extra={"count": count})
        return count
