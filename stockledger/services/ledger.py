"""
InventoryLedger: one object that owns the client-side state.

Screens used to share stock, lots and balances through globals. Here the
ledger holds the StockCache and wires it into every service that writes, so
whoever adjusts stock also invalidates what the other screens read.

Example:
    ```python
    async with open_ledger() as ledger:
        levels = await ledger.cache.get(3)
        outcome = await ledger.adjustments.adjust(12, "decrease", 2, "damage")
        summary = await ledger.summarize_warehouse(3)
    ```
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from pydantic import ValidationError

from stockledger.clients.inventory_client import InventoryAPIClient, InventoryRepository
from stockledger.clients.sales_client import SalesAPIClient, SalesRepository
from stockledger.config import Settings, get_settings
from stockledger.core.exceptions import ConfigurationError
from stockledger.core.logging import configure_logging, get_logger
from stockledger.models.inventory import InventorySummary, summarize
from stockledger.services.adjustment_service import AdjustmentService
from stockledger.services.lot_allocator import LotAllocator
from stockledger.services.payment_batch import PaymentBatchAllocator
from stockledger.services.stock_cache import StockCache, iter_inventory

logger = get_logger(__name__)


def load_settings() -> Settings:
    """Cached settings; an invalid environment raises ConfigurationError."""
    try:
        return get_settings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid stockledger configuration: {e}") from e


class InventoryLedger:
    """
    Client-side state plus the services that read and change it.

    Attributes:
        inventory: Inventory backend
        sales: Sales backend
        cache: Stock levels per warehouse
        lots: Lot selection for a product
        adjustments: Stock adjustments and stocking of presentations
        payments: Batch payments against pending sales
    """

    def __init__(
        self,
        inventory: InventoryRepository,
        sales: SalesRepository,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or load_settings()
        self.settings = settings
        self.inventory = inventory
        self.sales = sales

        self.cache = StockCache(inventory, page_size=settings.INVENTORY_PAGE_SIZE)
        self.lots = LotAllocator(inventory, page_size=settings.LOTS_PAGE_SIZE)
        self.adjustments = AdjustmentService(inventory, self.cache)
        self.payments = PaymentBatchAllocator(sales, epsilon=settings.BALANCE_EPSILON)

    async def summarize_warehouse(self, warehouse_id: int | None) -> InventorySummary:
        """Record count, low-stock count and total units of a warehouse."""
        records = [
            record
            async for record in iter_inventory(
                self.inventory, warehouse_id, self.settings.INVENTORY_PAGE_SIZE
            )
        ]
        summary = summarize(records)
        logger.info(
            "warehouse_summarized",
            warehouse_id=warehouse_id,
            total_records=summary.total_records,
            low_stock=summary.low_stock,
        )
        return summary

    def reset(self) -> None:
        """Forget every cached read, e.g. after switching accounts."""
        self.cache.invalidate_all()
        self.payments.invalidate()


@asynccontextmanager
async def open_ledger(
    settings: Settings | None = None, configure_logs: bool = True
) -> AsyncIterator[InventoryLedger]:
    """
    Open the HTTP clients and yield a ledger bound to them.

    Args:
        settings: Settings to use; loaded from the environment when omitted
        configure_logs: Configure structlog from ``settings`` first
    """
    settings = settings or load_settings()
    if configure_logs:
        configure_logging(settings.SERVICE_NAME, settings.LOG_LEVEL)

    async with InventoryAPIClient(settings) as inventory, SalesAPIClient(settings) as sales:
        logger.info(
            "ledger_opened",
            base_url=settings.API_BASE_URL,
            version=settings.SERVICE_VERSION,
        )
        yield InventoryLedger(inventory, sales, settings)
    logger.info("ledger_closed")
