"""
Outcome values returned by the ledger services.

Every mutating operation returns exactly one of three shapes, told apart by
their ``kind`` field:

- ``"success"``: the write happened; carries the resulting state
- ``"validation_failure"``: nothing was sent; carries one FieldError per problem
- ``"submission_failure"``: the backend or the network failed; no local state changed

Example:
    ```python
    outcome = await ledger.adjustments.adjust(7, AdjustmentDirection.DECREASE, 3, "damage")
    match outcome:
        case Adjusted(record=record):
            ...
        case ValidationFailure(errors=errors):
            ...
        case SubmissionFailure(message=message):
            ...
    ```
"""

from __future__ import annotations

from decimal import Decimal
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, Field

from stockledger.models.inventory import InventoryRecord, Movement
from stockledger.models.sales import Payment, Sale


class ValidationErrorKind(StrEnum):
    INVALID_DIRECTION = "invalid_direction"
    INVALID_QUANTITY = "invalid_quantity"
    INVALID_MIN_STOCK = "invalid_min_stock"
    MISSING_REASON = "missing_reason"
    INSUFFICIENT_STOCK = "insufficient_stock"
    INCOMPATIBLE_LOT = "incompatible_lot"
    NO_SALES_SELECTED = "no_sales_selected"
    MISSING_RECEIPT = "missing_receipt"
    INVALID_AMOUNT = "invalid_amount"
    AMOUNT_EXCEEDS_BALANCE = "amount_exceeds_balance"
    INVALID_DATE = "invalid_date"


class FieldError(BaseModel):
    """One validation problem, attributable to a form field or a batch line."""

    kind: ValidationErrorKind
    field: str
    message: str
    sale_id: int | None = None
    available: int | None = None
    balance_due: Decimal | None = None
    amount: Decimal | None = None

    @classmethod
    def invalid_direction(cls, value: object) -> FieldError:
        return cls(
            kind=ValidationErrorKind.INVALID_DIRECTION,
            field="direction",
            message=f"Direction must be increase or decrease, got {value!r}",
        )

    @classmethod
    def invalid_quantity(cls, minimum: int = 1) -> FieldError:
        return cls(
            kind=ValidationErrorKind.INVALID_QUANTITY,
            field="quantity",
            message=f"Quantity must be a whole number of at least {minimum}",
        )

    @classmethod
    def invalid_min_stock(cls) -> FieldError:
        return cls(
            kind=ValidationErrorKind.INVALID_MIN_STOCK,
            field="min_stock",
            message="Minimum stock must be a whole number of at least 0",
        )

    @classmethod
    def missing_reason(cls) -> FieldError:
        return cls(
            kind=ValidationErrorKind.MISSING_REASON,
            field="reason",
            message="A reason is required for every adjustment",
        )

    @classmethod
    def insufficient_stock(cls, available: int) -> FieldError:
        return cls(
            kind=ValidationErrorKind.INSUFFICIENT_STOCK,
            field="quantity",
            message=f"Not enough stock. Available: {available}",
            available=available,
        )

    @classmethod
    def incompatible_lot(cls, lot_id: int, product_id: int) -> FieldError:
        return cls(
            kind=ValidationErrorKind.INCOMPATIBLE_LOT,
            field="lot_id",
            message=f"Lot {lot_id} does not belong to product {product_id}",
        )

    @classmethod
    def no_sales_selected(cls) -> FieldError:
        return cls(
            kind=ValidationErrorKind.NO_SALES_SELECTED,
            field="lines",
            message="Select at least one sale",
        )

    @classmethod
    def missing_receipt(cls) -> FieldError:
        return cls(
            kind=ValidationErrorKind.MISSING_RECEIPT,
            field="receipt",
            message="A receipt file is required",
        )

    @classmethod
    def invalid_amount(cls, sale_id: int) -> FieldError:
        return cls(
            kind=ValidationErrorKind.INVALID_AMOUNT,
            field="amount",
            message=f"Amount for sale #{sale_id} must be a positive number",
            sale_id=sale_id,
        )

    @classmethod
    def amount_exceeds_balance(
        cls, sale_id: int, balance_due: Decimal, amount: Decimal
    ) -> FieldError:
        return cls(
            kind=ValidationErrorKind.AMOUNT_EXCEEDS_BALANCE,
            field="amount",
            message=(
                f"Amount {amount} for sale #{sale_id} exceeds its balance due of {balance_due}"
            ),
            sale_id=sale_id,
            balance_due=balance_due,
            amount=amount,
        )

    @classmethod
    def invalid_date(cls) -> FieldError:
        return cls(
            kind=ValidationErrorKind.INVALID_DATE,
            field="date",
            message="Payment date must be an ISO date (YYYY-MM-DD)",
        )


class ValidationFailure(BaseModel):
    kind: Literal["validation_failure"] = "validation_failure"
    errors: list[FieldError]

    @property
    def ok(self) -> bool:
        return False

    @property
    def kinds(self) -> set[ValidationErrorKind]:
        return {e.kind for e in self.errors}

    def for_sale(self, sale_id: int) -> list[FieldError]:
        return [e for e in self.errors if e.sale_id == sale_id]


class SubmissionFailure(BaseModel):
    """
    The backend rejected the operation or could not be reached.

    ``stale`` is set when the backend refused an operation that passed local
    validation, or accepted one whose answer could not be read; ``current_record``
    then holds the state re-read afterwards when that re-read worked.
    """

    kind: Literal["submission_failure"] = "submission_failure"
    message: str
    upstream_status: int | None = None
    stale: bool = False
    current_record: InventoryRecord | None = None

    @property
    def ok(self) -> bool:
        return False


class Adjusted(BaseModel):
    kind: Literal["success"] = "success"
    record: InventoryRecord
    movement: Movement

    @property
    def ok(self) -> bool:
        return True


class Stocked(BaseModel):
    kind: Literal["success"] = "success"
    record: InventoryRecord

    @property
    def ok(self) -> bool:
        return True


class BatchSuccess(BaseModel):
    """
    Payments created by a batch plus the pending sales re-read afterwards.

    ``sales`` is None when the batch went through but the re-read failed;
    balances must then be loaded again before the next batch.
    """

    kind: Literal["success"] = "success"
    payments: list[Payment]
    sales: list[Sale] | None = None

    @property
    def ok(self) -> bool:
        return True

    def remaining_balance(self, sale_id: int) -> Decimal | None:
        """Balance after the batch; a sale missing from the pending list is settled."""
        if self.sales is None:
            return None
        for sale in self.sales:
            if sale.id == sale_id:
                return sale.balance_due
        return Decimal("0")


AdjustmentOutcome = Annotated[
    Adjusted | ValidationFailure | SubmissionFailure, Field(discriminator="kind")
]
StockingOutcome = Annotated[
    Stocked | ValidationFailure | SubmissionFailure, Field(discriminator="kind")
]
BatchOutcome = Annotated[
    BatchSuccess | ValidationFailure | SubmissionFailure, Field(discriminator="kind")
]
