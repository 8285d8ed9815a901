"""
Allocation — FEFO (First-Expiry-First-Out) allocation over stock batches.

Usage:
    from pharmstock import stock

    plan = stock.allocate(paracetamol, 8, commit=False)   # dry run
    allocations = stock.allocate(paracetamol, 8)          # deducts from batches
    stock.return_stock(allocations)                       # compensating action
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable

from django.db import DatabaseError, transaction
from django.utils import timezone

from pharmstock import clock
from pharmstock.exceptions import StockError
from pharmstock.models.batch import StockBatch
from pharmstock.services.batches import BatchStore

logger = logging.getLogger('pharmstock')


@dataclass(frozen=True)
class BatchAllocation:
    """A claim of ``quantity`` units against one batch."""

    batch_id: int
    quantity: int
    expiry_date: date | None = None

    def as_dict(self) -> dict[str, Any]:
        """JSON-safe form, as stored on sale lines."""
        return {
            'batch_id': self.batch_id,
            'quantity': self.quantity,
            'expiry_date': self.expiry_date.isoformat() if self.expiry_date else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BatchAllocation:
        expiry = data.get('expiry_date')
        if isinstance(expiry, str):
            expiry = date.fromisoformat(expiry)
        return cls(
            batch_id=int(data['batch_id']),
            quantity=int(data['quantity']),
            expiry_date=expiry,
        )


def validate_quantity(quantity) -> int:
    """
    Quantities are whole, positive base units.

    Raises:
        StockError('INVALID_QUANTITY'): For bools, non-integers and values <= 0
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise StockError('INVALID_QUANTITY', requested=quantity)
    return quantity


class Allocator:
    """Stateless FEFO allocation on top of BatchStore."""

    @classmethod
    def allocate(cls, product, quantity: int, commit: bool = True,
                 now: datetime | None = None) -> list[BatchAllocation]:
        """
        Allocate ``quantity`` base units of ``product`` in FEFO order.

        1. Fetch the product's batches
        2. Drop batches without an expiry after today (never allocatable)
        3. Sort by expiry, then batch pk
        4. All-or-nothing: fail without touching anything if the total
           is short
        5. Take min(batch.quantity, remaining) from each batch in order
        6. If ``commit``, deduct each planned quantity (batches reaching
           zero are tombstoned); otherwise just return the plan

        Args:
            product: Product instance or pk
            quantity: Base units needed
            commit: Deduct from batches (False = dry run / pre-flight)
            now: Override the clock (defaults to pharmstock.clock)

        Returns:
            List of BatchAllocation in consumption order

        Raises:
            StockError('INVALID_QUANTITY'): If quantity is not a positive integer
            StockError('PRODUCT_NOT_FOUND'): If the product does not exist
            StockError('INSUFFICIENT_STOCK'): If unexpired stock is short

        Concurrency:
            - Runs under transaction.atomic()
            - With commit, locks the product row so plan + deduction are
              atomic with respect to other allocators on the same product
        """
        validate_quantity(quantity)
        today = timezone.localdate(now) if now is not None else clock.today()

        with transaction.atomic():
            if commit:
                product = BatchStore.lock_product(product)
            else:
                product = BatchStore.get_product(product)

            batches = [
                b for b in BatchStore.list_batches(product)
                if b.expiry_date is not None and b.expiry_date > today
            ]
            batches.sort(key=lambda b: (b.expiry_date, b.pk))

            total_available = sum(b.quantity for b in batches)
            if total_available < quantity:
                logger.info(
                    "stock.allocate.insufficient",
                    extra={
                        "product": str(product),
                        "requested": quantity,
                        "available": total_available,
                    },
                )
                raise StockError(
                    'INSUFFICIENT_STOCK',
                    product=str(product),
                    available=total_available,
                    requested=quantity,
                )

            allocations = cls._plan(batches, quantity)

            if commit:
                for alloc in allocations:
                    BatchStore.adjust_quantity(alloc.batch_id, -alloc.quantity)

        logger.info(
            "stock.allocate",
            extra={
                "product": str(product),
                "qty": quantity,
                "commit": commit,
                "batches": [a.batch_id for a in allocations],
            },
        )
        return allocations

    @classmethod
    def return_stock(cls, allocations: Iterable[BatchAllocation | dict]) -> list[BatchAllocation | dict]:
        """
        Give allocated quantities back to their batches.

        The compensating action for allocate(). Never raises: callers run it
        while handling another error. An empty list is a no-op.

        Batches that reached zero are tombstones and still accept returns.
        Only a batch that has since been pruned cannot be found; that
        quantity is lost and logged as BATCH_NOT_FOUND_ON_RETURN.

        A stored dict that can't be read as an allocation is logged and
        reported back as-is.

        Returns:
            Entries that could NOT be returned (empty when all went back)
        """
        lost = []

        for alloc in allocations or ():
            if isinstance(alloc, dict):
                try:
                    alloc = BatchAllocation.from_dict(alloc)
                except (KeyError, TypeError, ValueError):
                    logger.error(
                        "stock.return.malformed",
                        extra={"allocation": alloc},
                    )
                    lost.append(alloc)
                    continue
            if alloc.quantity <= 0:
                continue

            try:
                batch = BatchStore.adjust_quantity(alloc.batch_id, alloc.quantity)
            except DatabaseError:
                logger.exception(
                    "stock.return.failed",
                    extra={"batch_id": alloc.batch_id, "qty": alloc.quantity},
                )
                lost.append(alloc)
                continue

            if batch is None:
                logger.warning(
                    "BATCH_NOT_FOUND_ON_RETURN: batch %s is gone, %s unit(s) lost",
                    alloc.batch_id,
                    alloc.quantity,
                    extra={"batch_id": alloc.batch_id, "qty": alloc.quantity},
                )
                lost.append(alloc)

        return lost

    # ══════════════════════════════════════════════════════════════
    # INTERNALS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def _plan(cls, batches: list[StockBatch], quantity: int) -> list[BatchAllocation]:
        """Greedy walk over FEFO-sorted batches."""
        allocations = []
        remaining = quantity

        for batch in batches:
            if remaining <= 0:
                break

            taken = min(batch.quantity, remaining)
            if taken > 0:
                allocations.append(BatchAllocation(
                    batch_id=batch.pk,
                    quantity=taken,
                    expiry_date=batch.expiry_date,
                ))
                remaining -= taken

        return allocations

