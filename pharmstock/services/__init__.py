"""
Stock services — modular organization of stock operations.

Each class covers one concern; ``pharmstock.service.Stock`` combines them:
    from pharmstock.services import BatchStore, Allocator, MovementLedger
"""

from pharmstock.services.adjustments import StockAdjustments
from pharmstock.services.allocation import Allocator, BatchAllocation
from pharmstock.services.batches import BatchStore
from pharmstock.services.checkout import CheckoutState, SaleLineRequest, SaleTransactionCoordinator
from pharmstock.services.ledger import MovementLedger

__all__ = [
    'BatchStore',
    'Allocator',
    'BatchAllocation',
    'MovementLedger',
    'StockAdjustments',
    'SaleTransactionCoordinator',
    'SaleLineRequest',
    'CheckoutState',
]
