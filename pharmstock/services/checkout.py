"""
Checkout — multi-line sale transactions with rollback.

A sale attempt moves through:
    VALIDATING → ALLOCATING → COMMITTING → DONE
                     │             │
                     └─────────────┴──→ ROLLING_BACK → FAILED

Allocating takes stock for every line (each line commits its own batch
deductions). If any line fails, the lines already allocated are returned
and no sale is written. Committing writes the sale, product aggregates,
ledger, cash and audit rows in one transaction; if that fails, every
allocation is returned as well.

After the sale, customers can bring part of it back (return_items) or the
whole sale can be cancelled (cancel_sale).

Usage:
    from pharmstock import stock
    from pharmstock.services.checkout import SaleLineRequest

    sale = stock.checkout([
        SaleLineRequest(paracetamol, 2),                     # 2 packs
        SaleLineRequest(ibuprofen, 5, is_base_unit=True),    # 5 tablets
    ], user=request.user)

    line = sale.lines.get(product=paracetamol)
    stock.return_items(sale, {line: 1}, user=request.user, reason='Unopened')
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from uuid import uuid4

from django.db import DatabaseError, transaction
from django.db.models import Max

from pharmstock import clock
from pharmstock.conf import pharmstock_settings
from pharmstock.exceptions import StockError
from pharmstock.models.audit import AuditEntry
from pharmstock.models.cash import CashEntry
from pharmstock.models.enums import (
    CashEntryKind,
    MovementType,
    PaymentMethod,
    SaleStatus,
    SaleType,
)
from pharmstock.models.sale import Sale, SaleLine, SaleSequence
from pharmstock.services.allocation import Allocator, BatchAllocation, validate_quantity
from pharmstock.services.batches import BatchStore
from pharmstock.services.ledger import MovementLedger, display_name

logger = logging.getLogger('pharmstock')


class CheckoutState(str, Enum):
    VALIDATING = 'validating'
    ALLOCATING = 'allocating'
    COMMITTING = 'committing'
    ROLLING_BACK = 'rolling_back'
    DONE = 'done'
    FAILED = 'failed'


@dataclass(frozen=True)
class SaleLineRequest:
    """
    One requested line of a sale.

    ``quantity`` is in packs unless ``is_base_unit`` is set, in which case
    it is already in base units (tablets, ampoules...).

    ``unit_price`` is the price of one of those packs or units. Decimal,
    int, float and numeric strings are accepted; checkout() converts the
    value to a Decimal rounded to the currency places and rejects anything
    else (or a negative price) with StockError('INVALID_SALE').
    """

    product: object
    quantity: int
    is_base_unit: bool = False
    unit_price: Decimal = Decimal('0.00')


@dataclass
class _AllocatedLine:
    request: SaleLineRequest
    product: object
    units: int
    allocations: list[BatchAllocation]


class SaleTransactionCoordinator:
    """Sale checkout, returns, cancellation and completion."""

    @classmethod
    def checkout(cls, lines, *, user=None, payment_method: str = PaymentMethod.CASH,
                 sale_type: str = SaleType.WALK_IN, total: Decimal | None = None,
                 customer_name: str = '') -> Sale:
        """
        Allocate stock for every line, then commit the sale.

        Walk-in sales are COMPLETED (a cash entry is written); delivery
        sales are PENDING until complete_sale().

        Args:
            lines: SaleLineRequest list, allocated in order
            total: Sale total (default: sum of quantity * unit_price)

        Returns:
            The committed Sale

        Raises:
            StockError('INVALID_SALE'): Empty lines, bad payment method or
                type, or a price/total that isn't a non-negative amount
            StockError('INVALID_QUANTITY'): A line quantity is not a positive int
            StockError('SALE_LINE_FAILED'): A line could not be allocated; no
                stock was kept and ``data['line_index']`` names the line
            StockError('PARTIAL_COMMIT_FAILURE'): Allocation succeeded but the
                sale could not be written; all stock was returned
        """
        attempt = uuid4().hex[:12]

        cls._transition(attempt, CheckoutState.VALIDATING)
        lines, total = cls._validate(lines, payment_method, sale_type, total)

        # Phase 1: allocate
        cls._transition(attempt, CheckoutState.ALLOCATING, lines=len(lines))
        allocated: list[_AllocatedLine] = []

        for index, line in enumerate(lines):
            try:
                product = BatchStore.get_product(line.product)
                units = product.to_base_units(line.quantity, line.is_base_unit)
                allocations = Allocator.allocate(product, units, commit=True)
            except (StockError, DatabaseError) as exc:
                cls._rollback(attempt, allocated, failed_line=index)
                if isinstance(exc, DatabaseError):
                    raise
                raise StockError(
                    'SALE_LINE_FAILED',
                    line_index=index,
                    product=str(line.product),
                    cause=exc.code,
                    available=exc.data.get('available', 0),
                    requested=exc.data.get('requested', 0),
                ) from exc

            allocated.append(_AllocatedLine(line, product, units, allocations))

        # Phase 2: commit. Stock is already out of the batches, so any
        # failure here must give it back.
        cls._transition(attempt, CheckoutState.COMMITTING)
        try:
            with transaction.atomic():
                sale = cls._commit(
                    allocated,
                    user=user,
                    payment_method=payment_method,
                    sale_type=sale_type,
                    total=total,
                    customer_name=customer_name,
                )
        except Exception as exc:
            logger.error(
                "PARTIAL_COMMIT_FAILURE: sale attempt %s allocated stock but could not be written",
                attempt,
                exc_info=True,
                extra={"attempt": attempt, "lines": len(allocated)},
            )
            cls._rollback(attempt, allocated)
            raise StockError(
                'PARTIAL_COMMIT_FAILURE',
                attempt=attempt,
                cause=getattr(exc, 'code', type(exc).__name__),
            ) from exc

        cls._transition(attempt, CheckoutState.DONE, sale_id=sale.sale_id)
        return sale

    @classmethod
    def return_items(cls, sale, items, *, user=None, reason: str = '') -> Sale:
        """
        Take back part of a sale.

        ``items`` maps sale lines (instance or pk) to the quantity returned,
        in the line's own unit (packs, or base units for lines sold by the
        unit). Units go back to the batches the line consumed, latest
        expiry first, so what stays sold is what expires soonest.

        Each line remembers how much came back and can't return more than
        it sold. A completed sale gets a refund cash entry for the returned
        value; a pending one will book only its net total on completion.

        Raises:
            StockError('INVALID_SALE'): If the sale doesn't exist
            StockError('INVALID_STATUS'): If the sale is cancelled
            StockError('INVALID_QUANTITY'): A quantity is not a positive int
            StockError('INVALID_RETURN'): No items, a line of another sale,
                or more than the line has left to return
        """
        with transaction.atomic():
            sale = cls._lock_sale(sale)
            if sale.status == SaleStatus.CANCELLED:
                raise StockError(
                    'INVALID_STATUS',
                    current=sale.status,
                    sale_id=sale.sale_id,
                )

            lines = {line.pk: line for line in sale.lines.all()}
            requested = cls._validate_return(sale, lines, items)

            products = {
                pk: BatchStore.lock_product(pk)
                for pk in sorted({lines[line_pk].product_id for line_pk in requested})
            }
            running = {pk: product.stock for pk, product in products.items()}

            now = clock.now()
            transaction_id = uuid4().hex
            label = reason or f"Return on sale #{sale.number}"
            refund = Decimal('0')
            returned = []
            lost = []

            for line_pk, quantity in requested.items():
                line = lines[line_pk]
                back = cls._take_back(
                    cls._line_allocations(line),
                    skip=line.returned_units,
                    units=quantity * line.units_per_quantity,
                )
                missing = Allocator.return_stock(back)
                lost.extend(missing)
                returned.extend((line, alloc) for alloc in back if alloc not in missing)

                line.returned_quantity += quantity
                line.save(update_fields=['returned_quantity'])
                refund += line.unit_price * quantity

            for product in products.values():
                BatchStore.refresh_product(product)

            for line, alloc in returned:
                product = products[line.product_id]
                previous = running[product.pk]
                running[product.pk] = previous + alloc.quantity
                MovementLedger.log_movement(
                    product,
                    MovementType.RETURN_CUSTOMER,
                    alloc.quantity,
                    user=user,
                    batch=alloc.batch_id,
                    reason=label,
                    reference=sale.sale_id,
                    transaction_id=transaction_id,
                    expiry_date=alloc.expiry_date,
                    applied=True,
                    previous_stock=previous,
                    new_stock=running[product.pk],
                )

            refund = cls._money(refund)
            sale.returned_total += refund
            sale.save(update_fields=['returned_total'])

            if sale.status == SaleStatus.COMPLETED and refund > 0:
                CashEntry.objects.create(
                    kind=CashEntryKind.REFUND,
                    amount=refund,
                    reason=f"Return on sale #{sale.number}",
                    sale=sale,
                    user=user,
                    timestamp=now,
                )

            cls._audit(
                'sale.returned',
                f"Sale #{sale.number}: {len(requested)} line(s) returned, {refund}",
                user,
                now,
                sale=sale.number,
                reason=reason,
                refund=str(refund),
                lines={str(lines[pk].position): quantity for pk, quantity in requested.items()},
                lost=[alloc.as_dict() for alloc in lost],
            )

        logger.info(
            "checkout.return",
            extra={
                "sale_id": sale.sale_id,
                "refund": str(refund),
                "lost": len(lost),
                "user": display_name(user),
            },
        )
        return sale

    @classmethod
    def cancel_sale(cls, sale, *, user=None, reason: str = '') -> Sale:
        """
        Cancel a sale and give its stock back.

        Each line's allocations (less anything already returned through
        return_items) go back to their batches and are logged as customer
        returns. A completed sale also gets a refund of its net total.

        Stock whose batch was pruned since the sale cannot be returned;
        it is logged and left out of the product aggregates.

        Raises:
            StockError('INVALID_SALE'): If the sale doesn't exist
            StockError('INVALID_STATUS'): If the sale is already cancelled
        """
        with transaction.atomic():
            sale = cls._lock_sale(sale)
            if sale.status == SaleStatus.CANCELLED:
                raise StockError(
                    'INVALID_STATUS',
                    current=sale.status,
                    sale_id=sale.sale_id,
                )

            lines = list(sale.lines.all())
            products = {
                pk: BatchStore.lock_product(pk)
                for pk in sorted({line.product_id for line in lines})
            }
            running = {pk: product.stock for pk, product in products.items()}

            returned = []
            lost = []
            for line in lines:
                back = cls._take_back(
                    cls._line_allocations(line),
                    skip=line.returned_units,
                    units=line.units - line.returned_units,
                )
                missing = Allocator.return_stock(back)
                lost.extend(missing)
                returned.extend((line, alloc) for alloc in back if alloc not in missing)

            now = clock.now()
            transaction_id = uuid4().hex
            label = reason or f"Cancelled sale #{sale.number}"

            for product in products.values():
                BatchStore.refresh_product(product)

            for line, alloc in returned:
                product = products[line.product_id]
                previous = running[product.pk]
                running[product.pk] = previous + alloc.quantity
                MovementLedger.log_movement(
                    product,
                    MovementType.RETURN_CUSTOMER,
                    alloc.quantity,
                    user=user,
                    batch=alloc.batch_id,
                    reason=label,
                    reference=sale.sale_id,
                    transaction_id=transaction_id,
                    expiry_date=alloc.expiry_date,
                    applied=True,
                    previous_stock=previous,
                    new_stock=running[product.pk],
                )

            if sale.status == SaleStatus.COMPLETED and sale.net_total > 0:
                CashEntry.objects.create(
                    kind=CashEntryKind.REFUND,
                    amount=sale.net_total,
                    reason=f"Refund sale #{sale.number}",
                    sale=sale,
                    user=user,
                    timestamp=now,
                )

            sale.status = SaleStatus.CANCELLED
            sale.cancelled_at = now
            sale.save(update_fields=['status', 'cancelled_at'])

            cls._audit(
                'sale.cancelled',
                f"Sale #{sale.number} cancelled",
                user,
                now,
                sale=sale.number,
                reason=reason,
                lost=[alloc.as_dict() for alloc in lost],
            )

        logger.info(
            "checkout.cancel",
            extra={"sale_id": sale.sale_id, "lost": len(lost), "user": display_name(user)},
        )
        return sale

    @classmethod
    def complete_sale(cls, sale, *, user=None) -> Sale:
        """
        Mark a deferred (delivery) sale as completed and book its payment.

        Transition: PENDING → COMPLETED

        Raises:
            StockError('INVALID_SALE'): If the sale doesn't exist
            StockError('INVALID_STATUS'): If status is not PENDING
        """
        with transaction.atomic():
            sale = cls._lock_sale(sale)
            if sale.status != SaleStatus.PENDING:
                raise StockError(
                    'INVALID_STATUS',
                    current=sale.status,
                    expected=SaleStatus.PENDING,
                )

            now = clock.now()
            sale.status = SaleStatus.COMPLETED
            sale.save(update_fields=['status'])

            cls._book_payment(sale, user, now)
            cls._audit(
                'sale.completed',
                f"Sale #{sale.number} completed: {sale.net_total}",
                user,
                now,
                sale=sale.number,
            )

        logger.info("checkout.complete", extra={"sale_id": sale.sale_id})
        return sale

    # ══════════════════════════════════════════════════════════════
    # INTERNALS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def _validate(cls, lines, payment_method: str, sale_type: str,
                  total) -> tuple[list[SaleLineRequest], Decimal]:
        """Check the request and normalize prices before any stock moves."""
        lines = list(lines or ())
        if not lines:
            raise StockError('INVALID_SALE', message='A sale needs at least one line')
        if payment_method not in PaymentMethod.values:
            raise StockError('INVALID_SALE', payment_method=payment_method)
        if sale_type not in SaleType.values:
            raise StockError('INVALID_SALE', sale_type=sale_type)

        checked = []
        for index, line in enumerate(lines):
            quantity = line.quantity
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                raise StockError('INVALID_QUANTITY', line_index=index, requested=quantity)
            price = cls._amount(line.unit_price, field='unit_price', line_index=index)
            checked.append(replace(line, unit_price=price))

        if total is None:
            total = sum((line.unit_price * line.quantity for line in checked), Decimal('0'))
        return checked, cls._amount(total, field='total')

    @classmethod
    def _validate_return(cls, sale: Sale, lines: dict, items) -> dict[int, int]:
        """Resolve {line or pk: quantity} against the sale's lines."""
        requested = {}
        for key, quantity in dict(items or {}).items():
            line_pk = key.pk if isinstance(key, SaleLine) else key
            line = lines.get(line_pk)
            if line is None:
                raise StockError('INVALID_RETURN', sale_id=sale.sale_id, line=str(key))
            validate_quantity(quantity)

            wanted = requested.get(line_pk, 0) + quantity
            if wanted > line.returnable_quantity:
                raise StockError(
                    'INVALID_RETURN',
                    sale_id=sale.sale_id,
                    line=line.position,
                    available=line.returnable_quantity,
                    requested=wanted,
                )
            requested[line_pk] = wanted

        if not requested:
            raise StockError('INVALID_RETURN', sale_id=sale.sale_id, message='Nothing to return')
        return requested

    @classmethod
    def _commit(cls, allocated: list[_AllocatedLine], *, user, payment_method: str,
                sale_type: str, total: Decimal, customer_name: str) -> Sale:
        """Phase 2. Runs inside the caller's transaction."""
        now = clock.now()
        status = SaleStatus.PENDING if sale_type == SaleType.DELIVERY else SaleStatus.COMPLETED

        sale = Sale.objects.create(
            number=cls._next_sale_number(),
            created_at=now,
            status=status,
            sale_type=sale_type,
            payment_method=payment_method,
            total=total,
            customer_name=customer_name,
            sold_by=user,
        )

        consumed = defaultdict(int)
        for position, line in enumerate(allocated, start=1):
            SaleLine.objects.create(
                sale=sale,
                position=position,
                product=line.product,
                quantity=line.request.quantity,
                is_base_unit=line.request.is_base_unit,
                units=line.units,
                unit_price=line.request.unit_price,
                allocations=[alloc.as_dict() for alloc in line.allocations],
            )
            consumed[line.product.pk] += line.units

        # Lock in pk order so concurrent sales can't deadlock each other
        products = {}
        running = {}
        for pk in sorted(consumed):
            product = BatchStore.lock_product(pk)
            previous = product.stock
            expected = previous - consumed[pk]
            BatchStore.refresh_product(product)
            if product.stock != expected:
                logger.warning(
                    "checkout.stock_drift",
                    extra={
                        "product": str(product),
                        "expected": expected,
                        "actual": product.stock,
                    },
                )
            products[pk] = product
            running[pk] = previous

        transaction_id = uuid4().hex
        for line in allocated:
            product = products[line.product.pk]
            for alloc in line.allocations:
                previous = running[product.pk]
                running[product.pk] = previous - alloc.quantity
                MovementLedger.log_movement(
                    product,
                    MovementType.SALE,
                    -alloc.quantity,
                    user=user,
                    batch=alloc.batch_id,
                    reason=f"Sale #{sale.number}",
                    reference=sale.sale_id,
                    transaction_id=transaction_id,
                    expiry_date=alloc.expiry_date,
                    applied=True,
                    previous_stock=previous,
                    new_stock=max(0, running[product.pk]),
                )

        if status == SaleStatus.COMPLETED:
            cls._book_payment(sale, user, now)

        cls._audit(
            'sale.completed' if status == SaleStatus.COMPLETED else 'sale.created',
            f"Sale #{sale.number}: {len(allocated)} line(s), {total}",
            user,
            now,
            sale=sale.number,
            status=status,
            payment_method=payment_method,
            total=str(total),
            lines=[
                {'product': line.product.sku, 'units': line.units}
                for line in allocated
            ],
        )
        return sale

    @classmethod
    def _rollback(cls, attempt: str, allocated: list[_AllocatedLine],
                  failed_line: int | None = None) -> None:
        """Return every allocated line's stock (compensating action)."""
        cls._transition(attempt, CheckoutState.ROLLING_BACK, failed_line=failed_line)

        lost = []
        for line in allocated:
            lost.extend(Allocator.return_stock(line.allocations))

        cls._transition(attempt, CheckoutState.FAILED, lost=len(lost))

    @classmethod
    def _line_allocations(cls, line: SaleLine) -> list[BatchAllocation]:
        parsed = []
        for data in line.allocations or ():
            try:
                parsed.append(BatchAllocation.from_dict(data))
            except (KeyError, TypeError, ValueError):
                logger.error(
                    "checkout.malformed_allocation",
                    extra={"sale_line": line.pk, "allocation": data},
                )
        return parsed

    @classmethod
    def _take_back(cls, allocations: list[BatchAllocation], *, skip: int,
                   units: int) -> list[BatchAllocation]:
        """
        Pick ``units`` from a line's allocations, latest expiry first.

        The first ``skip`` units in that order already went back with
        earlier returns.
        """
        ordered = sorted(
            allocations,
            key=lambda a: (a.expiry_date or date.min, a.batch_id),
            reverse=True,
        )
        picked = []
        for alloc in ordered:
            if units <= 0:
                break
            already = min(skip, alloc.quantity)
            skip -= already
            take = min(alloc.quantity - already, units)
            if take > 0:
                picked.append(BatchAllocation(alloc.batch_id, take, alloc.expiry_date))
                units -= take
        return picked

    @classmethod
    def _book_payment(cls, sale: Sale, user, now) -> CashEntry:
        kind = CashEntryKind.SALE if sale.payment_method == PaymentMethod.CASH else CashEntryKind.CARD_SALE
        return CashEntry.objects.create(
            kind=kind,
            amount=sale.net_total,
            reason=f"Sale #{sale.number}",
            sale=sale,
            user=user,
            timestamp=now,
        )

    @classmethod
    def _audit(cls, action: str, summary: str, user, now, **details) -> AuditEntry:
        return AuditEntry.objects.create(
            action=action,
            summary=summary,
            details=details,
            user=user,
            timestamp=now,
        )

    @classmethod
    def _next_sale_number(cls) -> int:
        """
        Take the next number from the SaleSequence row.

        The row stays locked until the caller's transaction ends, so
        concurrent checkouts are served one after the other. It is seeded
        from the highest existing sale number on first use.
        """
        start = pharmstock_settings.SALE_NUMBER_START
        sequence, _ = SaleSequence.objects.select_for_update().get_or_create(
            pk=1,
            defaults={'last_number': lambda: Sale.objects.aggregate(m=Max('number'))['m'] or 0},
        )
        sequence.last_number = max(sequence.last_number + 1, start)
        sequence.save(update_fields=['last_number'])
        return sequence.last_number

    @classmethod
    def _lock_sale(cls, sale) -> Sale:
        """Lock a sale by instance, pk or "sale:{number}"."""
        qs = Sale.objects.select_for_update()
        if isinstance(sale, Sale):
            found = qs.filter(pk=sale.pk).first()
        elif isinstance(sale, str) and sale.startswith('sale:'):
            number = sale.split(':', 1)[1]
            found = qs.filter(number=int(number)).first() if number.isdigit() else None
        else:
            found = qs.filter(pk=sale).first()

        if found is None:
            raise StockError('INVALID_SALE', message='Sale not found', sale=str(sale))
        return found

    @classmethod
    def _amount(cls, value, **context) -> Decimal:
        """Parse a money amount; floats go through str() so 0.1 stays 0.1."""
        try:
            amount = value if isinstance(value, Decimal) else Decimal(str(value))
            if amount.is_finite() and amount >= 0:
                return cls._money(amount)
        except InvalidOperation:
            pass
        raise StockError('INVALID_SALE', value=str(value), **context)

    @classmethod
    def _money(cls, amount) -> Decimal:
        places = pharmstock_settings.DEFAULT_CURRENCY_PLACES
        return Decimal(amount).quantize(Decimal(1).scaleb(-places))

    @classmethod
    def _transition(cls, attempt: str, state: CheckoutState, **context) -> None:
        logger.debug(
            "checkout.state",
            extra={"attempt": attempt, "state": state.value, **context},
        )
