"""
Stock adjustments through movement records.

An adjustment is one entrada or salida against one inventory record. The
record is always re-read from the backend right before the stock check, the
movement is sent once, and the cached stock of the affected warehouse is
dropped afterwards.
"""

from typing import Any

from stockledger.clients.inventory_client import InventoryRepository
from stockledger.core.constants import (
    GENERIC_SUBMISSION_ERROR,
    REJECTION_STATUS_CODES,
    AdjustmentDirection,
)
from stockledger.core.exceptions import ExternalServiceError, UnexpectedResponseError
from stockledger.core.logging import get_logger
from stockledger.core.numbers import parse_non_negative_int, parse_positive_int
from stockledger.models.inventory import (
    InventoryCreate,
    InventoryRecord,
    Movement,
    MovementRequest,
)
from stockledger.models.results import (
    Adjusted,
    AdjustmentOutcome,
    FieldError,
    Stocked,
    StockingOutcome,
    SubmissionFailure,
    ValidationFailure,
)
from stockledger.services.lot_allocator import is_eligible
from stockledger.services.stock_cache import StockCache, iter_inventory

logger = get_logger(__name__)


class AdjustmentService:
    """
    Validates and applies stock changes.

    Attributes:
        repository: Inventory backend
        cache: Stock cache invalidated after every write
    """

    def __init__(self, repository: InventoryRepository, cache: StockCache) -> None:
        self.repository = repository
        self.cache = cache

    async def adjust(
        self,
        inventory_id: int,
        direction: AdjustmentDirection | str,
        amount: Any,
        reason: str | None,
        lot_id: int | None = None,
    ) -> AdjustmentOutcome:
        """
        Increase or decrease one record's quantity.

        Args:
            inventory_id: Record to change
            direction: ``increase`` (entrada) or ``decrease`` (salida)
            amount: Positive whole quantity; integer strings are accepted
            reason: Free text, required
            lot_id: Optional lot the movement draws from or feeds

        Returns:
            Adjusted with the updated record and the movement,
            ValidationFailure when nothing was sent (an unknown direction
            included),
            SubmissionFailure when the backend or the network failed
        """
        # field checks need no network
        errors: list[FieldError] = []
        try:
            direction = AdjustmentDirection(direction)
        except ValueError:
            errors.append(FieldError.invalid_direction(direction))
        quantity = parse_positive_int(amount)
        if quantity is None:
            errors.append(FieldError.invalid_quantity())
        reason_text = (reason or "").strip()
        if not reason_text:
            errors.append(FieldError.missing_reason())
        if errors or quantity is None or not isinstance(direction, AdjustmentDirection):
            return self._rejected(inventory_id, direction, errors)

        try:
            record = await self.repository.get_inventory(inventory_id)
        except ExternalServiceError as e:
            return self._failed(inventory_id, e)

        if direction is AdjustmentDirection.DECREASE and quantity > record.quantity:
            errors.append(FieldError.insufficient_stock(record.quantity))

        if lot_id is not None and record.product_id is not None:
            try:
                lot = await self.repository.get_lot(lot_id)
            except ExternalServiceError as e:
                return self._failed(inventory_id, e)
            if not is_eligible(lot, record.product_id):
                errors.append(FieldError.incompatible_lot(lot_id, record.product_id))

        if errors:
            return self._rejected(inventory_id, direction, errors)

        request = MovementRequest(
            inventory_id=record.id,
            type=direction.movement_type,
            quantity=quantity,
            reason=reason_text,
            lot_id=lot_id,
        )
        movement = Movement(
            inventory_id=record.id,
            type=request.type,
            presentation_id=record.presentation_id,
            lot_id=lot_id,
            quantity=quantity,
            reason=reason_text,
        )
        expected_quantity = movement.apply(record.quantity)

        try:
            updated = await self.repository.register_movement(request)
        except UnexpectedResponseError as e:
            updated = await self._applied(record, expected_quantity, e)
        except ExternalServiceError as e:
            self.cache.invalidate_record(record)
            if e.upstream_status in REJECTION_STATUS_CODES:
                return await self._stale(record, e)
            return self._failed(inventory_id, e)

        self.cache.invalidate_record(updated)

        if updated.quantity != expected_quantity:
            # someone else moved stock in between; the backend's number wins
            logger.warning(
                "movement_quantity_mismatch",
                inventory_id=inventory_id,
                expected=expected_quantity,
                actual=updated.quantity,
            )

        if updated.last_updated is not None:
            movement = movement.model_copy(update={"timestamp": updated.last_updated})

        logger.info(
            "stock_adjusted",
            inventory_id=inventory_id,
            movement_type=movement.type.value,
            quantity=quantity,
            previous_quantity=record.quantity,
            new_quantity=updated.quantity,
            low_stock=updated.is_low_stock,
        )
        return Adjusted(record=updated, movement=movement)

    async def stock_presentation(
        self,
        presentation_id: int,
        warehouse_id: int,
        quantity: Any,
        min_stock: Any = 0,
        lot_id: int | None = None,
    ) -> StockingOutcome:
        """
        Create the inventory record of a presentation in a warehouse.

        ``quantity`` and ``min_stock`` must be whole numbers >= 0.
        """
        errors: list[FieldError] = []
        parsed_quantity = parse_non_negative_int(quantity)
        if parsed_quantity is None:
            errors.append(FieldError.invalid_quantity(minimum=0))
        parsed_min_stock = parse_non_negative_int(min_stock)
        if parsed_min_stock is None:
            errors.append(FieldError.invalid_min_stock())
        if errors or parsed_quantity is None or parsed_min_stock is None:
            logger.info(
                "stocking_rejected",
                presentation_id=presentation_id,
                warehouse_id=warehouse_id,
                errors=[e.kind.value for e in errors],
            )
            return ValidationFailure(errors=errors)

        payload = InventoryCreate(
            presentation_id=presentation_id,
            warehouse_id=warehouse_id,
            quantity=parsed_quantity,
            min_stock=parsed_min_stock,
            lot_id=lot_id,
        )
        try:
            record = await self.repository.create_inventory(payload)
        except UnexpectedResponseError as e:
            found = await self._find_created(presentation_id, warehouse_id, e)
            if found is None:
                return SubmissionFailure(
                    message="Stock was recorded but the server response could not be read",
                    upstream_status=e.upstream_status,
                    stale=True,
                )
            record = found
        except ExternalServiceError as e:
            logger.error(
                "stocking_failed",
                presentation_id=presentation_id,
                warehouse_id=warehouse_id,
                upstream_status=e.upstream_status,
                error=e.message,
            )
            return SubmissionFailure(
                message=e.server_message or GENERIC_SUBMISSION_ERROR,
                upstream_status=e.upstream_status,
            )

        self.cache.invalidate_record(record)
        logger.info(
            "presentation_stocked",
            inventory_id=record.id,
            presentation_id=presentation_id,
            warehouse_id=warehouse_id,
            quantity=record.quantity,
        )
        return Stocked(record=record)

    def _rejected(
        self, inventory_id: int, direction: AdjustmentDirection | str, errors: list[FieldError]
    ) -> ValidationFailure:
        logger.info(
            "adjustment_rejected",
            inventory_id=inventory_id,
            direction=str(direction),
            errors=[e.kind.value for e in errors],
        )
        return ValidationFailure(errors=errors)

    def _failed(self, inventory_id: int, error: ExternalServiceError) -> SubmissionFailure:
        logger.error(
            "adjustment_failed",
            inventory_id=inventory_id,
            upstream_status=error.upstream_status,
            error=error.message,
        )
        return SubmissionFailure(
            message=error.server_message or GENERIC_SUBMISSION_ERROR,
            upstream_status=error.upstream_status,
        )

    async def _stale(
        self, record: InventoryRecord, error: ExternalServiceError
    ) -> SubmissionFailure:
        """The backend refused a locally valid movement: re-read before anyone retries."""
        current: InventoryRecord | None
        try:
            current = await self.repository.get_inventory(record.id)
        except ExternalServiceError as refetch_error:
            logger.warning(
                "stale_record_refetch_failed",
                inventory_id=record.id,
                error=refetch_error.message,
            )
            current = None

        logger.warning(
            "adjustment_rejected_by_backend",
            inventory_id=record.id,
            upstream_status=error.upstream_status,
            server_message=error.server_message,
            local_quantity=record.quantity,
            current_quantity=current.quantity if current else None,
        )
        return SubmissionFailure(
            message=error.server_message or GENERIC_SUBMISSION_ERROR,
            upstream_status=error.upstream_status,
            stale=True,
            current_record=current,
        )

    async def _applied(
        self, record: InventoryRecord, expected_quantity: int, error: UnexpectedResponseError
    ) -> InventoryRecord:
        """The movement went through but its response was unreadable: re-read the record."""
        logger.warning(
            "movement_response_unreadable",
            inventory_id=record.id,
            upstream_status=error.upstream_status,
            error=error.message,
        )
        try:
            return await self.repository.get_inventory(record.id)
        except ExternalServiceError as refetch_error:
            logger.warning(
                "applied_record_refetch_failed",
                inventory_id=record.id,
                error=refetch_error.message,
            )
            return record.model_copy(update={"quantity": expected_quantity, "last_updated": None})

    async def _find_created(
        self, presentation_id: int, warehouse_id: int, error: UnexpectedResponseError
    ) -> InventoryRecord | None:
        """Look up a record whose creation was accepted but not echoed back readably."""
        logger.warning(
            "stocking_response_unreadable",
            presentation_id=presentation_id,
            warehouse_id=warehouse_id,
            error=error.message,
        )
        self.cache.invalidate(warehouse_id)
        self.cache.invalidate(None)
        try:
            async for record in iter_inventory(self.repository, warehouse_id, self.cache.page_size):
                if record.presentation_id == presentation_id:
                    return record
        except ExternalServiceError as lookup_error:
            logger.warning(
                "created_record_lookup_failed",
                presentation_id=presentation_id,
                warehouse_id=warehouse_id,
                error=lookup_error.message,
            )
        return None
