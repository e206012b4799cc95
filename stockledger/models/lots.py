from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import Field, field_validator, model_validator

from stockledger.models.common import BackendModel, Pagination, WireDecimal


class Lot(BackendModel):
    """
    Traceable batch of material.

    Weights arrive as decimal strings. A lot never has negative availability
    and its dry weight never exceeds its wet weight.
    """

    id: int
    product_id: int = Field(alias="producto_id")
    supplier_id: int | None = Field(default=None, alias="proveedor_id")
    description: str | None = Field(default=None, alias="descripcion")
    wet_weight_kg: WireDecimal = Field(alias="peso_humedo_kg")
    dry_weight_kg: WireDecimal | None = Field(default=None, alias="peso_seco_kg")
    ingress_date: date | datetime | None = Field(default=None, alias="fecha_ingreso")
    available_quantity_kg: WireDecimal = Field(
        default=Decimal("0"), alias="cantidad_disponible_kg"
    )

    @field_validator("available_quantity_kg", mode="before")
    @classmethod
    def default_missing_availability(cls, v: object) -> object:
        # the backend omits the field for lots that were never stocked
        return "0" if v is None else v

    @model_validator(mode="after")
    def check_weights(self) -> "Lot":
        if self.available_quantity_kg < 0:
            raise ValueError("available_quantity_kg must be >= 0")
        if self.wet_weight_kg < 0:
            raise ValueError("wet_weight_kg must be >= 0")
        if self.dry_weight_kg is not None and self.dry_weight_kg > self.wet_weight_kg:
            raise ValueError("dry_weight_kg cannot exceed wet_weight_kg")
        return self

    @property
    def has_availability(self) -> bool:
        return self.available_quantity_kg > 0


class LotPage(BackendModel):
    data: list[Lot] = Field(default_factory=list)
    pagination: Pagination | None = None
