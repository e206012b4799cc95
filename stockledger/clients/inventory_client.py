"""
HTTP client for the inventory side of the backend.

Covers inventory records, stock movements and lots. Every method returns
parsed models; backend failures surface as ExternalServiceError.

Example:
    ```python
    async with InventoryAPIClient() as client:
        page = await client.list_inventory(page=1, per_page=50, warehouse_id=3)
        record = await client.register_movement(
            MovementRequest(inventory_id=12, type="salida", quantity=2, reason="damage")
        )
    ```
"""

from typing import Any, Protocol

from stockledger.clients.base_client import BaseAPIClient
from stockledger.config import Settings, get_settings
from stockledger.core.constants import INVENTORY_ENDPOINT, LOTS_ENDPOINT, MOVEMENTS_ENDPOINT
from stockledger.core.logging import get_logger
from stockledger.models.inventory import (
    InventoryCreate,
    InventoryPage,
    InventoryRecord,
    MovementRequest,
)
from stockledger.models.lots import Lot, LotPage

logger = get_logger(__name__)


class InventoryRepository(Protocol):
    """
    Interface the ledger services need from the inventory backend.

    InventoryAPIClient implements it over HTTP; tests use an in-memory fake.
    """

    async def list_inventory(
        self, page: int = 1, per_page: int = 10, warehouse_id: int | None = None
    ) -> InventoryPage: ...

    async def get_inventory(self, inventory_id: int) -> InventoryRecord: ...

    async def create_inventory(self, payload: InventoryCreate) -> InventoryRecord: ...

    async def update_inventory(
        self, inventory_id: int, changes: dict[str, Any]
    ) -> InventoryRecord: ...

    async def register_movement(self, movement: MovementRequest) -> InventoryRecord: ...

    async def list_lots(
        self, page: int = 1, per_page: int = 10, product_id: int | None = None
    ) -> LotPage: ...

    async def get_lot(self, lot_id: int) -> Lot: ...


class InventoryAPIClient(BaseAPIClient):
    """Client for ``/inventarios``, ``/movimientos`` and ``/lotes``."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        super().__init__(
            base_url=settings.API_BASE_URL, service_name="inventory-api", settings=settings
        )

    async def list_inventory(
        self, page: int = 1, per_page: int = 10, warehouse_id: int | None = None
    ) -> InventoryPage:
        """
        One page of inventory records.

        Args:
            page: 1-based page number
            per_page: Page size
            warehouse_id: Optional ``almacen_id`` filter; None lists every warehouse
        """
        params: dict[str, Any] = {"page": page, "per_page": per_page}
        if warehouse_id is not None:
            params["almacen_id"] = warehouse_id

        body = await self.get(INVENTORY_ENDPOINT, params=params)
        return self._parse(InventoryPage, body)

    async def get_inventory(self, inventory_id: int) -> InventoryRecord:
        body = await self.get(f"{INVENTORY_ENDPOINT}/{inventory_id}")
        return self._parse(InventoryRecord, body)

    async def create_inventory(self, payload: InventoryCreate) -> InventoryRecord:
        body = await self.post(INVENTORY_ENDPOINT, json=payload.to_wire())
        return self._parse(InventoryRecord, body)

    async def update_inventory(self, inventory_id: int, changes: dict[str, Any]) -> InventoryRecord:
        """PUT partial changes; None values are not sent."""
        cleaned = {k: v for k, v in changes.items() if v is not None}
        body = await self.put(f"{INVENTORY_ENDPOINT}/{inventory_id}", json=cleaned)
        return self._parse(InventoryRecord, body)

    async def register_movement(self, movement: MovementRequest) -> InventoryRecord:
        """Register an entrada/salida and return the record after it was applied."""
        logger.info(
            "movement_submitted",
            inventory_id=movement.inventory_id,
            type=movement.type.value,
            quantity=movement.quantity,
        )
        body = await self.post(MOVEMENTS_ENDPOINT, json=movement.to_wire())
        return self._parse(InventoryRecord, body)

    async def list_lots(
        self, page: int = 1, per_page: int = 10, product_id: int | None = None
    ) -> LotPage:
        params: dict[str, Any] = {"page": page, "per_page": per_page}
        if product_id is not None:
            params["producto_id"] = product_id

        body = await self.get(LOTS_ENDPOINT, params=params)
        return self._parse(LotPage, body)

    async def get_lot(self, lot_id: int) -> Lot:
        body = await self.get(f"{LOTS_ENDPOINT}/{lot_id}")
        return self._parse(Lot, body)
