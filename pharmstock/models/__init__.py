"""
Pharmstock Models.

Core models for batch-tracked pharmacy stock:
- Product: What is sold (stock/earliest_expiry denormalized from batches)
- StockBatch: One expiring lot of a product
- StockMovement: Append-only, approval-gated ledger of stock changes
- Sale / SaleLine: Committed sales carrying their batch allocations
- SaleSequence: Locked counter for sale numbers
- CashEntry: Cash register ledger rows
- AuditEntry: Business audit log
"""

from pharmstock.models.audit import AuditEntry
from pharmstock.models.batch import StockBatch
from pharmstock.models.cash import CashEntry
from pharmstock.models.enums import (
    CashEntryKind,
    MovementStatus,
    MovementType,
    PaymentMethod,
    SaleStatus,
    SaleType,
)
from pharmstock.models.movement import StockMovement
from pharmstock.models.product import Product
from pharmstock.models.sale import Sale, SaleLine, SaleSequence

__all__ = [
    'MovementType',
    'MovementStatus',
    'SaleStatus',
    'SaleType',
    'PaymentMethod',
    'CashEntryKind',
    'Product',
    'StockBatch',
    'StockMovement',
    'Sale',
    'SaleLine',
    'SaleSequence',
    'CashEntry',
    'AuditEntry',
]
