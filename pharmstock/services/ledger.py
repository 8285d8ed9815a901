"""
Movement ledger — append-only audit trail of stock changes.

Logging a movement never touches batches. A movement is either approved
on creation (the actor may approve, or the caller already applied the
change) or stays pending until a reviewer approves it, and approving is
what applies the change.
"""

import logging
from datetime import datetime

from django.db import transaction

from pharmstock import clock
from pharmstock.adapters.permissions import get_permission_checker
from pharmstock.conf import pharmstock_settings
from pharmstock.exceptions import StockError
from pharmstock.models.enums import MovementStatus, MovementType
from pharmstock.models.movement import StockMovement

logger = logging.getLogger('pharmstock')


def display_name(user) -> str:
    """Snapshot name for an actor (empty for no actor)."""
    if user is None:
        return ''
    full_name = getattr(user, 'get_full_name', lambda: '')()
    return full_name or user.get_username()


class MovementLedger:
    """Append, review and query stock movements."""

    @classmethod
    def log_movement(cls, product, movement_type: str, quantity: int, *, user=None,
                     batch=None, reason: str = '', notes: str = '', reference: str = '',
                     transaction_id: str = '', expiry_date=None, applied: bool = False,
                     previous_stock: int | None = None,
                     new_stock: int | None = None) -> StockMovement:
        """
        Append a movement.

        Status is APPROVED when ``applied`` is set (the caller already
        realized the stock change, e.g. a sale) or when the actor may
        approve adjustments; otherwise PENDING. An actor with no identity
        is never an approver.

        Does NOT touch batches. For a freshly logged movement it is the
        caller's job to apply the change when, and only when, the result is
        APPROVED.

        Raises:
            StockError('INVALID_MOVEMENT_TYPE'): Unknown movement_type
            StockError('INVALID_QUANTITY'): quantity is zero or not an int
        """
        if movement_type not in MovementType.values:
            raise StockError('INVALID_MOVEMENT_TYPE', movement_type=movement_type)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity == 0:
            raise StockError('INVALID_QUANTITY', requested=quantity)

        if previous_stock is None:
            previous_stock = product.stock
        if new_stock is None:
            new_stock = max(0, previous_stock + quantity)

        if applied or cls.can_approve(user):
            status = MovementStatus.APPROVED
        else:
            status = MovementStatus.PENDING

        movement = StockMovement.objects.create(
            product=product,
            product_name=product.name,
            movement_type=movement_type,
            quantity=quantity,
            previous_stock=previous_stock,
            new_stock=new_stock,
            reason=reason,
            notes=notes,
            reference=reference,
            transaction_id=transaction_id,
            batch_id=getattr(batch, 'pk', batch),
            expiry_date=expiry_date,
            performed_by=user,
            performed_by_name=display_name(user),
            timestamp=clock.now(),
            status=status,
        )

        logger.info(
            "ledger.log",
            extra={
                "movement_id": movement.pk,
                "product": str(product),
                "type": movement_type,
                "delta": quantity,
                "status": status,
            },
        )
        return movement

    @classmethod
    def approve_movement(cls, movement_id, reviewer) -> StockMovement:
        """
        Approve a pending movement and apply its stock change.

        Transition: PENDING → APPROVED. Both happen in one transaction: if
        the change cannot be applied (e.g. not enough stock left for a
        removal) the movement stays PENDING and the error propagates.

        Raises:
            StockError('MOVEMENT_NOT_FOUND'): If the movement doesn't exist
            StockError('INVALID_STATUS'): If status is not PENDING
            StockError('PERMISSION_DENIED'): If reviewer may not approve
        """
        from pharmstock.services.adjustments import StockAdjustments

        with transaction.atomic():
            movement = cls._review(movement_id, reviewer)
            StockAdjustments.apply_movement(movement)
            return cls._close(movement, MovementStatus.APPROVED, reviewer)

    @classmethod
    def reject_movement(cls, movement_id, reviewer) -> StockMovement:
        """
        Reject a pending movement. Stock is never touched.

        Transition: PENDING → REJECTED

        Raises:
            StockError('MOVEMENT_NOT_FOUND'): If the movement doesn't exist
            StockError('INVALID_STATUS'): If status is not PENDING
            StockError('PERMISSION_DENIED'): If reviewer may not approve
        """
        with transaction.atomic():
            movement = cls._review(movement_id, reviewer)
            return cls._close(movement, MovementStatus.REJECTED, reviewer)

    @classmethod
    def get_history(cls, product=None, movement_type: str | None = None,
                    performed_by=None, start: datetime | None = None,
                    end: datetime | None = None, status: str | None = None):
        """
        Movements matching every given filter, newest first.

        ``start``/``end`` are inclusive bounds on the movement timestamp.
        """
        qs = StockMovement.objects.all()

        if product is not None:
            qs = qs.filter(product_id=getattr(product, 'pk', product))
        if movement_type:
            qs = qs.filter(movement_type=movement_type)
        if performed_by is not None:
            qs = qs.filter(performed_by_id=getattr(performed_by, 'pk', performed_by))
        if start is not None:
            qs = qs.filter(timestamp__gte=start)
        if end is not None:
            qs = qs.filter(timestamp__lte=end)
        if status:
            qs = qs.filter(status=status)

        return qs.order_by('-timestamp', '-pk')

    @classmethod
    def pending_movements(cls, product=None):
        """Movements waiting for review, newest first."""
        return cls.get_history(product=product, status=MovementStatus.PENDING)

    @classmethod
    def can_approve(cls, user) -> bool:
        """Does the permission oracle let ``user`` approve adjustments?"""
        if user is None:
            return False
        return get_permission_checker().can_perform(user, pharmstock_settings.APPROVE_ACTION)

    # ══════════════════════════════════════════════════════════════
    # INTERNALS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def _review(cls, movement_id, reviewer) -> StockMovement:
        """Lock a movement for review and check the transition is allowed."""
        if not cls.can_approve(reviewer):
            raise StockError('PERMISSION_DENIED', action=pharmstock_settings.APPROVE_ACTION)

        pk = cls._parse_movement_id(movement_id)
        movement = StockMovement.objects.select_for_update().filter(pk=pk).first()
        if movement is None:
            raise StockError('MOVEMENT_NOT_FOUND', movement_id=movement_id)

        if movement.status != MovementStatus.PENDING:
            raise StockError(
                'INVALID_STATUS',
                current=movement.status,
                expected=MovementStatus.PENDING,
            )
        return movement

    @classmethod
    def _close(cls, movement: StockMovement, status: str, reviewer) -> StockMovement:
        movement.status = status
        movement.reviewed_by = reviewer
        movement.reviewed_at = clock.now()
        movement.save(update_fields=['status', 'reviewed_by', 'reviewed_at'])

        logger.info(
            "ledger.review",
            extra={
                "movement_id": movement.pk,
                "status": status,
                "reviewer": display_name(reviewer),
            },
        )
        return movement

    @classmethod
    def _parse_movement_id(cls, movement_id) -> int | None:
        """Extract PK from an int, a StockMovement or "movement:{pk}"."""
        if isinstance(movement_id, StockMovement):
            return movement_id.pk
        if isinstance(movement_id, str) and movement_id.startswith('movement:'):
            movement_id = movement_id.split(':', 1)[1]
        try:
            return int(movement_id)
        except (TypeError, ValueError):
            return None
