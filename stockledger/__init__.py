"""Client-side inventory and payment ledger for the inventory/sales backend."""

from stockledger.services import InventoryLedger, open_ledger

__version__ = "0.1.0"

__all__ = ["InventoryLedger", "open_ledger", "__version__"]
