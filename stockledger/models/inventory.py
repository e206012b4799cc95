from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime

from pydantic import Field, NonNegativeInt, PositiveInt, field_validator

from stockledger.core.constants import MovementType
from stockledger.models.common import BackendModel, Pagination


class PresentationSummary(BackendModel):
    """Presentation embedded in an inventory record."""

    id: int
    name: str | None = Field(default=None, alias="nombre")
    product_id: int | None = Field(default=None, alias="producto_id")


class WarehouseSummary(BackendModel):
    id: int
    name: str | None = Field(default=None, alias="nombre")


class InventoryRecord(BackendModel):
    """
    Quantity on hand of one presentation in one warehouse.

    ``quantity`` can never be negative; a payload that says otherwise is
    rejected at parse time.
    """

    id: int
    presentation_id: int = Field(alias="presentacion_id")
    warehouse_id: int = Field(alias="almacen_id")
    lot_id: int | None = Field(default=None, alias="lote_id")
    quantity: NonNegativeInt = Field(alias="cantidad")
    min_stock: NonNegativeInt = Field(default=0, alias="stock_minimo")
    last_updated: datetime | None = Field(default=None, alias="ultima_actualizacion")
    presentation: PresentationSummary | None = Field(default=None, alias="presentacion")
    warehouse: WarehouseSummary | None = Field(default=None, alias="almacen")

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.min_stock

    @property
    def product_id(self) -> int | None:
        """Product behind the presentation, when the backend embedded it."""
        return self.presentation.product_id if self.presentation else None


class InventoryPage(BackendModel):
    data: list[InventoryRecord] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class InventoryCreate(BackendModel):
    """Body of ``POST /inventarios``."""

    presentation_id: int = Field(alias="presentacion_id")
    warehouse_id: int = Field(alias="almacen_id")
    quantity: NonNegativeInt = Field(alias="cantidad")
    min_stock: NonNegativeInt = Field(alias="stock_minimo")
    lot_id: int | None = Field(default=None, alias="lote_id")


class MovementRequest(BackendModel):
    """Body of ``POST /movimientos``."""

    inventory_id: int = Field(alias="inventario_id")
    type: MovementType = Field(alias="tipo")
    quantity: PositiveInt = Field(alias="cantidad")
    reason: str = Field(alias="motivo", min_length=1)
    lot_id: int | None = Field(default=None, alias="lote_id")

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("reason must not be blank")
        return v


class Movement(BackendModel):
    """
    Append-only record of one stock change.

    Built from the movement request once the backend has accepted it.
    """

    inventory_id: int = Field(alias="inventario_id")
    type: MovementType = Field(alias="tipo")
    presentation_id: int = Field(alias="presentacion_id")
    lot_id: int | None = Field(default=None, alias="lote_id")
    quantity: PositiveInt = Field(alias="cantidad")
    reason: str = Field(alias="motivo", min_length=1)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC), alias="fecha")

    model_config = {"frozen": True}

    @property
    def signed_quantity(self) -> int:
        return self.quantity if self.type is MovementType.ENTRADA else -self.quantity

    def apply(self, quantity: int) -> int:
        """Return ``quantity`` after this movement; a salida may not go below zero."""
        result = quantity + self.signed_quantity
        if result < 0:
            raise ValueError(
                f"salida of {self.quantity} exceeds available quantity {quantity}"
            )
        return result


class StockLevel(BackendModel):
    """Cached (presentation, available quantity) pair."""

    presentation_id: int
    available_quantity: NonNegativeInt

    model_config = {"frozen": True}


class InventorySummary(BackendModel):
    total_records: int
    low_stock: int
    total_units: int

    @property
    def low_stock_percentage(self) -> float:
        if self.total_records == 0:
            return 0.0
        return self.low_stock / self.total_records * 100


def summarize(records: Iterable[InventoryRecord]) -> InventorySummary:
    """Count records, low-stock records and units on hand."""
    total = low = units = 0
    for record in records:
        total += 1
        units += record.quantity
        if record.is_low_stock:
            low += 1
    return InventorySummary(total_records=total, low_stock=low, total_units=units)
