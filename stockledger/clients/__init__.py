"""
HTTP clients for the inventory/sales backend.

- BaseAPIClient: retrying reads, single-shot writes, error translation
- InventoryAPIClient: inventory records, movements and lots
- SalesAPIClient: pending sales and batch payments

Example:
    ```python
    from stockledger.clients import InventoryAPIClient

    async with InventoryAPIClient() as client:
        record = await client.get_inventory(12)
    ```
"""

from stockledger.clients.base_client import BaseAPIClient
from stockledger.clients.inventory_client import InventoryAPIClient, InventoryRepository
from stockledger.clients.sales_client import SalesAPIClient, SalesRepository

__all__ = [
    "BaseAPIClient",
    "InventoryAPIClient",
    "InventoryRepository",
    "SalesAPIClient",
    "SalesRepository",
]
