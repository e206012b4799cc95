"""Backend payload models and operation outcomes"""

from .common import BackendModel, Pagination
from .inventory import (
    InventoryCreate,
    InventoryPage,
    InventoryRecord,
    InventorySummary,
    Movement,
    MovementRequest,
    StockLevel,
    summarize,
)
from .lots import Lot, LotPage
from .results import (
    Adjusted,
    AdjustmentOutcome,
    BatchOutcome,
    BatchSuccess,
    FieldError,
    Stocked,
    StockingOutcome,
    SubmissionFailure,
    ValidationErrorKind,
    ValidationFailure,
)
from .sales import BatchLine, Payment, Receipt, Sale, SalePage, normalize_payment_date

__all__ = [
    "BackendModel",
    "Pagination",
    "InventoryCreate",
    "InventoryPage",
    "InventoryRecord",
    "InventorySummary",
    "Movement",
    "MovementRequest",
    "StockLevel",
    "summarize",
    "Lot",
    "LotPage",
    "Adjusted",
    "AdjustmentOutcome",
    "BatchOutcome",
    "BatchSuccess",
    "FieldError",
    "Stocked",
    "StockingOutcome",
    "SubmissionFailure",
    "ValidationErrorKind",
    "ValidationFailure",
    "BatchLine",
    "Payment",
    "Receipt",
    "Sale",
    "SalePage",
    "normalize_payment_date",
]
