"""
Exceptions for Pharmstock.

All errors are StockError with a structured code for programmatic handling.
"""

from typing import Any


class BaseError(Exception):
    """
    Error carrying a machine-readable code plus context data.

    Subclasses provide ``_default_messages`` keyed by code; an explicit
    ``message=`` keyword overrides the default.
    """

    _default_messages: dict[str, str] = {}

    def __init__(self, code: str, message: str | None = None, **data: Any):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(f"[{code}] {self.message}")


class StockError(BaseError):
    """
    Structured exception for stock operations.

    Usage:
        try:
            stock.allocate(product, 10)
        except StockError as e:
            if e.code == 'INSUFFICIENT_STOCK':
                print(f"Only {e.available} available")

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable message
        data: Additional context data
    """

    _default_messages = {
        'INVALID_QUANTITY': 'Quantity must be a positive whole number of units',
        'INSUFFICIENT_STOCK': 'Not enough unexpired stock to cover the request',
        'PRODUCT_NOT_FOUND': 'Product not found',
        'BATCH_NOT_FOUND': 'Batch not found',
        'BATCH_NOT_FOUND_ON_RETURN': 'Batch no longer exists, returned stock was lost',
        'PARTIAL_COMMIT_FAILURE': 'Sale allocated stock but could not be committed',
        'SALE_LINE_FAILED': 'A sale line could not be allocated',
        'INVALID_SALE': 'Invalid sale request',
        'INVALID_STATUS': 'Invalid status for this operation',
        'INVALID_RETURN': 'Cannot return more than was sold and not yet returned',
        'MOVEMENT_NOT_FOUND': 'Stock movement not found',
        'REASON_REQUIRED': 'A reason is required',
        'EXPIRY_REQUIRED': 'An expiry date is required to create a batch',
        'INVALID_MOVEMENT_TYPE': 'Unknown stock movement type',
        'PERMISSION_DENIED': 'Actor is not allowed to perform this action',
    }

    @property
    def available(self) -> int:
        """Shortcut for data['available']."""
        return self.data.get('available', 0)

    @property
    def requested(self) -> int:
        """Shortcut for data['requested']."""
        return self.data.get('requested', 0)

    def as_dict(self) -> dict[str, Any]:
        """Serialize to dict (useful for APIs)."""
        return {
            'code': self.code,
            'message': self.message,
            'data': {
                k: v if isinstance(v, (int, bool, type(None))) else str(v)
                for k, v in self.data.items()
            }
        }
