"""Core module - exceptions, logging, constants and number parsing"""

from .constants import AdjustmentDirection, MovementType, PaymentMethod, PaymentStatus
from .exceptions import (
    ConfigurationError,
    ExternalServiceError,
    NoEligibleLots,
    StockLedgerError,
    UnexpectedResponseError,
)

__all__ = [
    "StockLedgerError",
    "ConfigurationError",
    "ExternalServiceError",
    "NoEligibleLots",
    "UnexpectedResponseError",
    "AdjustmentDirection",
    "MovementType",
    "PaymentMethod",
    "PaymentStatus",
]
