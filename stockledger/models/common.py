from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict

from stockledger.core.numbers import parse_decimal


def _coerce_decimal(value: Any) -> Decimal:
    parsed = parse_decimal(value)
    if parsed is None:
        raise ValueError(f"not a decimal value: {value!r}")
    return parsed


WireDecimal = Annotated[Decimal, BeforeValidator(_coerce_decimal)]
"""Decimal that also accepts the backend's string and locale formats."""


class BackendModel(BaseModel):
    """
    Root model for backend payloads.

    Attributes use English names; the backend's Spanish names are aliases.
    Either name is accepted on input and unknown keys are ignored.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        """Serialize with backend field names, dropping unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Pagination(BackendModel):
    """Pagination block returned with list endpoints."""

    page: int = 1
    pages: int = 1
    per_page: int = 10
    total: int = 0

    @property
    def has_next(self) -> bool:
        return self.page < self.pages
