"""
Selection of lots that stock of a given product may be attached to.

Lots of another product are never offered: mixing products would corrupt
each lot's available weight.
"""

from collections.abc import Iterable

from stockledger.clients.inventory_client import InventoryRepository
from stockledger.core.exceptions import NoEligibleLots
from stockledger.core.logging import get_logger
from stockledger.models.lots import Lot

logger = get_logger(__name__)


def is_eligible(lot: Lot, product_id: int | None, available_only: bool = False) -> bool:
    if product_id is not None and lot.product_id != product_id:
        return False
    return not available_only or lot.has_availability


def eligible_lots(
    product_id: int | None, all_lots: Iterable[Lot], available_only: bool = False
) -> list[Lot]:
    """
    Lots belonging to ``product_id``, in their original order.

    With ``product_id`` None every lot is returned; callers are expected to
    have required a presentation before asking. An empty result is a valid
    answer and must not be replaced by the unfiltered list.
    """
    return [lot for lot in all_lots if is_eligible(lot, product_id, available_only)]


class LotAllocator:
    """Loads lots from the backend and filters them for a product."""

    def __init__(self, repository: InventoryRepository, page_size: int = 500) -> None:
        self._repository = repository
        self.page_size = page_size

    async def load_eligible_lots(
        self, product_id: int | None, available_only: bool = False
    ) -> list[Lot]:
        page = await self._repository.list_lots(
            page=1, per_page=self.page_size, product_id=product_id
        )
        # the backend may ignore producto_id, so filter again here
        lots = eligible_lots(product_id, page.data, available_only=available_only)
        logger.info(
            "eligible_lots_loaded",
            product_id=product_id,
            fetched=len(page.data),
            eligible=len(lots),
        )
        return lots

    async def require_eligible_lots(
        self, product_id: int | None, available_only: bool = False
    ) -> list[Lot]:
        """Like load_eligible_lots, but an empty result raises NoEligibleLots."""
        lots = await self.load_eligible_lots(product_id, available_only=available_only)
        if not lots:
            raise NoEligibleLots(product_id)
        return lots
