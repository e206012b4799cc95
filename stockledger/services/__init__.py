"""
Ledger services: stock cache, lot selection, adjustments and batch payments.

Every service takes its repositories in the constructor; InventoryLedger
wires them together around one shared StockCache.
"""

from stockledger.services.adjustment_service import AdjustmentService
from stockledger.services.ledger import InventoryLedger, load_settings, open_ledger
from stockledger.services.lot_allocator import LotAllocator, eligible_lots, is_eligible
from stockledger.services.payment_batch import PaymentBatchAllocator
from stockledger.services.stock_cache import StockCache, iter_inventory

__all__ = [
    "AdjustmentService",
    "InventoryLedger",
    "LotAllocator",
    "PaymentBatchAllocator",
    "StockCache",
    "eligible_lots",
    "is_eligible",
    "iter_inventory",
    "load_settings",
    "open_ledger",
]
