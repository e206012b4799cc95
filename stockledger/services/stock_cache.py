"""
Per-warehouse cache of presentation -> available quantity.

Screens filter presentations by warehouse over and over; the cache keeps
the first answer for each warehouse until a writer invalidates it. There is
no TTL. A writer that changes stock must call ``invalidate`` (or
``invalidate_record``) before anyone reads that warehouse again.

The key ``None`` is the explicit "every warehouse" view and is cached on its
own; quantities of a presentation stocked in several warehouses are summed
there.

Example:
    ```python
    cache = StockCache(inventory_client)
    levels = await cache.get(3)
    in_stock = await cache.available_presentations(3, in_stock_only=True)
    cache.invalidate(3)
    ```
"""

import asyncio
from collections.abc import AsyncIterator

from stockledger.clients.inventory_client import InventoryRepository
from stockledger.core.logging import get_logger
from stockledger.models.inventory import InventoryRecord, StockLevel

logger = get_logger(__name__)

WarehouseKey = int | None


async def iter_inventory(
    repository: InventoryRepository, warehouse_id: WarehouseKey, page_size: int
) -> AsyncIterator[InventoryRecord]:
    """
    Every inventory record of a warehouse, page by page.

    Records of other warehouses are dropped even if the backend returns them:
    a warehouse filter is always honoured.
    """
    page = 1
    while True:
        result = await repository.list_inventory(
            page=page, per_page=page_size, warehouse_id=warehouse_id
        )
        for record in result.data:
            if warehouse_id is not None and record.warehouse_id != warehouse_id:
                logger.warning(
                    "inventory_foreign_record_dropped",
                    warehouse_id=warehouse_id,
                    record_warehouse_id=record.warehouse_id,
                    inventory_id=record.id,
                )
                continue
            yield record

        if not result.data or not result.pagination.has_next:
            break
        page += 1


class StockCache:
    """
    Warehouse-keyed cache of stock levels.

    Attributes:
        page_size: Page size used when loading a warehouse
    """

    def __init__(self, repository: InventoryRepository, page_size: int = 100) -> None:
        self._repository = repository
        self.page_size = page_size
        self._entries: dict[WarehouseKey, tuple[StockLevel, ...]] = {}
        self._locks: dict[WarehouseKey, asyncio.Lock] = {}
        # bumped on invalidation so a fetch that was in flight does not store stale data
        self._generations: dict[WarehouseKey, int] = {}
        self._epoch = 0

    def __contains__(self, warehouse_id: WarehouseKey) -> bool:
        return warehouse_id in self._entries

    def _version(self, warehouse_id: WarehouseKey) -> tuple[int, int]:
        return (self._epoch, self._generations.get(warehouse_id, 0))

    async def get(self, warehouse_id: WarehouseKey) -> list[StockLevel]:
        """
        Stock levels of a warehouse, loading them on first use.

        Args:
            warehouse_id: Warehouse to read, or None for every warehouse

        Returns:
            One StockLevel per presentation, in backend order
        """
        cached = self._entries.get(warehouse_id)
        if cached is not None:
            logger.debug("stock_cache_hit", warehouse_id=warehouse_id)
            return list(cached)

        lock = self._locks.setdefault(warehouse_id, asyncio.Lock())
        async with lock:
            # another reader may have filled it while we waited
            cached = self._entries.get(warehouse_id)
            if cached is not None:
                return list(cached)

            version = self._version(warehouse_id)
            logger.info("stock_cache_miss", warehouse_id=warehouse_id)
            levels = await self._load(warehouse_id)

            if self._version(warehouse_id) == version:
                self._entries[warehouse_id] = tuple(levels)
            else:
                logger.info("stock_cache_store_skipped", warehouse_id=warehouse_id)
            return levels

    async def _load(self, warehouse_id: WarehouseKey) -> list[StockLevel]:
        totals: dict[int, int] = {}
        async for record in iter_inventory(self._repository, warehouse_id, self.page_size):
            totals[record.presentation_id] = totals.get(record.presentation_id, 0) + record.quantity

        return [
            StockLevel(presentation_id=presentation_id, available_quantity=quantity)
            for presentation_id, quantity in totals.items()
        ]

    def invalidate(self, warehouse_id: WarehouseKey) -> None:
        """Drop one warehouse's entry; the next get re-fetches it."""
        self._entries.pop(warehouse_id, None)
        self._generations[warehouse_id] = self._generations.get(warehouse_id, 0) + 1
        logger.debug("stock_cache_invalidated", warehouse_id=warehouse_id)

    def invalidate_record(self, record: InventoryRecord) -> None:
        """Drop every entry that includes ``record``: its warehouse and the unfiltered view."""
        self.invalidate(record.warehouse_id)
        self.invalidate(None)

    def invalidate_all(self) -> None:
        """Drop everything, e.g. when the filtering criteria themselves change."""
        self._entries.clear()
        self._epoch += 1
        logger.debug("stock_cache_cleared")

    async def quantity_of(self, warehouse_id: WarehouseKey, presentation_id: int) -> int:
        for level in await self.get(warehouse_id):
            if level.presentation_id == presentation_id:
                return level.available_quantity
        return 0

    async def available_presentations(
        self, warehouse_id: WarehouseKey, in_stock_only: bool = False
    ) -> set[int]:
        """Presentation ids stocked in a warehouse, optionally only those with quantity > 0."""
        return {
            level.presentation_id
            for level in await self.get(warehouse_id)
            if not in_stock_only or level.available_quantity > 0
        }
