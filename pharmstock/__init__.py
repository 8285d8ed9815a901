"""
Pharmstock — batch-tracked pharmacy stock for Django.

FEFO allocation over expiring batches, multi-line sales with rollback and
an approval-gated stock movement ledger.

Usage:
    from pharmstock import stock, StockError

    stock.receive(amoxicillin, 60, date(2027, 5, 1))
    stock.allocate(amoxicillin, 12)
    stock.total_stock(amoxicillin)  # 48
"""


def __getattr__(name):
    """Lazy import to avoid circular imports during app loading."""
    if name == 'stock':
        from pharmstock.service import Stock
        return Stock
    elif name == 'StockError':
        from pharmstock.exceptions import StockError
        return StockError
    elif name == 'BatchAllocation':
        from pharmstock.services.allocation import BatchAllocation
        return BatchAllocation
    elif name == 'SaleLineRequest':
        from pharmstock.services.checkout import SaleLineRequest
        return SaleLineRequest
    elif name == 'Product':
        from pharmstock.models.product import Product
        return Product
    elif name == 'StockBatch':
        from pharmstock.models.batch import StockBatch
        return StockBatch
    elif name == 'StockMovement':
        from pharmstock.models.movement import StockMovement
        return StockMovement
    elif name == 'Sale':
        from pharmstock.models.sale import Sale
        return Sale
    elif name == 'MovementType':
        from pharmstock.models.enums import MovementType
        return MovementType
    elif name == 'MovementStatus':
        from pharmstock.models.enums import MovementStatus
        return MovementStatus
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'stock',
    'StockError',
    'BatchAllocation',
    'SaleLineRequest',
    'Product',
    'StockBatch',
    'StockMovement',
    'Sale',
    'MovementType',
    'MovementStatus',
]

__version__ = '0.1.0'
