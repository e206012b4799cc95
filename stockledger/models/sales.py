from __future__ import annotations

import mimetypes
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stockledger.core.constants import DEFAULT_RECEIPT_STEM, PaymentMethod, PaymentStatus
from stockledger.models.common import BackendModel, WireDecimal


class Sale(BackendModel):
    """Sale as far as payment allocation is concerned."""

    id: int
    client_id: int | None = Field(default=None, alias="cliente_id")
    warehouse_id: int | None = Field(default=None, alias="almacen_id")
    total: WireDecimal
    balance_due: WireDecimal = Field(default=Decimal("0"), alias="saldo_pendiente")
    payment_status: PaymentStatus | None = Field(default=None, alias="estado_pago")

    @field_validator("balance_due", mode="before")
    @classmethod
    def default_missing_balance(cls, v: Any) -> Any:
        return "0" if v is None else v

    @field_validator("balance_due")
    @classmethod
    def check_balance(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("balance_due must be >= 0")
        return v


class SalePage(BackendModel):
    data: list[Sale] = Field(default_factory=list)


class Payment(BackendModel):
    """Payment created by the backend for one sale of a batch."""

    id: int
    sale_id: int = Field(alias="venta_id")
    amount: WireDecimal = Field(alias="monto")
    paid_at: datetime | None = Field(default=None, alias="fecha")
    method: PaymentMethod = Field(alias="metodo_pago")
    reference: str | None = Field(default=None, alias="referencia")
    receipt_url: str | None = Field(default=None, alias="url_comprobante")


class BatchLine(BackendModel):
    """
    One ``{venta_id, monto}`` entry of a batch.

    ``amount`` stays as the caller typed it until validation parses it.
    """

    sale_id: int = Field(alias="venta_id")
    amount: Any = Field(alias="monto")


class Receipt(BaseModel):
    """Receipt file shared by every payment in a batch."""

    model_config = ConfigDict(frozen=True)

    filename: str
    content: bytes
    content_type: str

    @property
    def is_empty(self) -> bool:
        return len(self.content) == 0

    @classmethod
    def from_bytes(
        cls, content: bytes, filename: str | None = None, content_type: str | None = None
    ) -> "Receipt":
        extension = Path(filename).suffix.lstrip(".").lower() if filename else ""
        extension = extension or "jpg"
        return cls(
            filename=filename or f"{DEFAULT_RECEIPT_STEM}.{extension}",
            content=content,
            content_type=content_type or _guess_content_type(extension),
        )

    @classmethod
    def from_path(cls, path: str | Path, content_type: str | None = None) -> "Receipt":
        p = Path(path)
        return cls.from_bytes(p.read_bytes(), filename=p.name, content_type=content_type)

    def as_upload(self) -> tuple[str, bytes, str]:
        """Tuple in the shape httpx expects for a multipart file."""
        return (self.filename, self.content, self.content_type)


def _guess_content_type(extension: str) -> str:
    guessed, _ = mimetypes.guess_type(f"file.{extension}")
    return guessed or f"image/{extension}"


def normalize_payment_date(value: date | datetime | str) -> str:
    """
    Full ISO-8601 timestamp for the ``fecha`` form field.

    A bare date is sent as midnight; the backend rejects date-only values.
    """
    if isinstance(value, str):
        text = value.strip()
        try:
            value = datetime.fromisoformat(text) if "T" in text else date.fromisoformat(text)
        except ValueError as e:
            raise ValueError(f"invalid payment date: {value!r}") from e
    if isinstance(value, datetime):
        return value.replace(microsecond=0).isoformat()
    return f"{value.isoformat()}T00:00:00"
