"""
Stock Service — The single public interface for all stock operations.

Usage:
    from pharmstock import stock, StockError

    stock.receive(paracetamol, 100, date(2027, 3, 1), batch_number='L2291')
    stock.allocate(paracetamol, 8, commit=False)   # FEFO plan, no change
    sale = stock.checkout([SaleLineRequest(paracetamol, 2)], user=request.user)
    stock.return_items(sale, {sale.lines.get(): 1}, user=request.user)
    stock.adjust(paracetamol, -3, reason='Broken blister', user=request.user)
"""

from pharmstock.services.adjustments import StockAdjustments
from pharmstock.services.allocation import Allocator
from pharmstock.services.batches import BatchStore
from pharmstock.services.checkout import SaleTransactionCoordinator
from pharmstock.services.ledger import MovementLedger


class Stock(
    BatchStore,
    Allocator,
    MovementLedger,
    StockAdjustments,
    SaleTransactionCoordinator,
):
    """
    Single interface for all stock operations.

    Parameter convention: (product, quantity, ...), quantities always in
    base units except sale lines, which may be in packs.

    IMPORTANT: All state-changing methods use atomic transactions with the
    product row locked. See each method's docstring.
    """
