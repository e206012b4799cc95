"""
Batch payments: one receipt, several sales, one POST.

The allocator keeps a snapshot of the pending sales it last read. Lines,
receipt and date are checked first; only then are amounts compared with that
snapshot, loaded on demand. The batch is sent once and the snapshot is dropped
whatever the outcome so the next batch always starts from fresh balances.

Example:
    ```python
    allocator = PaymentBatchAllocator(sales_client)
    await allocator.load_pending_sales()
    outcome = await allocator.submit_batch(
        [(1, "40.00"), (2, "60.00")],
        Receipt.from_path("voucher.png"),
        date(2024, 5, 10),
    )
    ```
"""

import json
from collections.abc import Iterable, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from stockledger.clients.sales_client import SalesRepository
from stockledger.core.constants import (
    BATCH_DATE_FIELD,
    BATCH_LINES_FIELD,
    BATCH_METHOD_FIELD,
    BATCH_REFERENCE_FIELD,
    GENERIC_SUBMISSION_ERROR,
    PaymentMethod,
)
from stockledger.core.exceptions import ExternalServiceError
from stockledger.core.logging import get_logger
from stockledger.core.numbers import format_amount, parse_decimal, to_cents
from stockledger.models.results import (
    BatchOutcome,
    BatchSuccess,
    FieldError,
    SubmissionFailure,
    ValidationFailure,
)
from stockledger.models.sales import BatchLine, Receipt, Sale, normalize_payment_date

logger = get_logger(__name__)

LineInput = BatchLine | tuple[int, Any]


def as_batch_lines(lines: Iterable[LineInput]) -> list[BatchLine]:
    """Accept ``(sale_id, amount)`` pairs or BatchLine objects."""
    result: list[BatchLine] = []
    for line in lines:
        if isinstance(line, BatchLine):
            result.append(line)
        else:
            sale_id, amount = line
            result.append(BatchLine(sale_id=sale_id, amount=amount))
    return result


def check_fields(
    lines: Sequence[BatchLine], receipt: Receipt | None
) -> tuple[list[FieldError], dict[int, Decimal]]:
    """
    Checks that need no balances: lines present, receipt attached, amounts valid.

    Amounts are judged as they will be sent, rounded to cents, so ``"0.004"``
    is invalid. Lines for the same sale are summed.

    Returns:
        The errors found and the rounded total per sale, in first-seen order
    """
    errors: list[FieldError] = []
    if not lines:
        errors.append(FieldError.no_sales_selected())
    if receipt is None or receipt.is_empty:
        errors.append(FieldError.missing_receipt())

    totals: dict[int, Decimal] = {}
    for line in lines:
        amount = parse_decimal(line.amount)
        if amount is None or to_cents(amount) <= 0:
            errors.append(FieldError.invalid_amount(line.sale_id))
            continue
        totals[line.sale_id] = totals.get(line.sale_id, Decimal("0")) + to_cents(amount)
    return errors, totals


def check_balances(
    totals: dict[int, Decimal], balances: dict[int, Decimal], epsilon: Decimal
) -> list[FieldError]:
    """A sale missing from ``balances`` counts as having nothing left to pay."""
    errors: list[FieldError] = []
    for sale_id, total in totals.items():
        balance = balances.get(sale_id, Decimal("0"))
        if total > balance + epsilon:
            errors.append(FieldError.amount_exceeds_balance(sale_id, balance, total))
    return errors


def check_lines(
    lines: Sequence[BatchLine],
    receipt: Receipt | None,
    balances: dict[int, Decimal],
    epsilon: Decimal,
) -> tuple[list[FieldError], dict[int, Decimal]]:
    """
    Validate a batch against known balances, reporting every problem.

    Returns:
        The errors found and the rounded total per sale, in first-seen order
    """
    errors, totals = check_fields(lines, receipt)
    return errors + check_balances(totals, balances, epsilon), totals


class PaymentBatchAllocator:
    """
    Splits one receipt across several sales.

    Attributes:
        repository: Sales backend
        epsilon: Tolerance when comparing an amount with a balance
    """

    def __init__(self, repository: SalesRepository, epsilon: Decimal = Decimal("0.001")) -> None:
        self.repository = repository
        self.epsilon = epsilon
        self._sales: dict[int, Sale] | None = None

    @property
    def pending_sales(self) -> list[Sale] | None:
        """Snapshot of the last read, or None when balances must be loaded again."""
        return None if self._sales is None else list(self._sales.values())

    def balance_of(self, sale_id: int) -> Decimal | None:
        if self._sales is None:
            return None
        sale = self._sales.get(sale_id)
        return sale.balance_due if sale else Decimal("0")

    async def load_pending_sales(self) -> list[Sale]:
        """Read pending and partially paid sales and keep them as the snapshot."""
        return list((await self._read_snapshot()).values())

    def invalidate(self) -> None:
        self._sales = None

    async def validate_batch(
        self, lines: Iterable[LineInput], receipt: Receipt | None
    ) -> ValidationFailure | None:
        """
        Check a batch without sending it.

        Line, receipt and amount problems are reported without touching the
        network. Balances are only loaded when those checks pass and no
        snapshot is held; a failure to read them raises ExternalServiceError.

        Returns:
            ValidationFailure listing every problem, or None when the batch is valid
        """
        errors, _ = await self._validate(as_batch_lines(lines), receipt)
        return ValidationFailure(errors=errors) if errors else None

    async def submit_batch(
        self,
        lines: Iterable[LineInput],
        receipt: Receipt | None,
        payment_date: date | datetime | str,
        method: PaymentMethod | str = PaymentMethod.TRANSFERENCIA,
        reference: str | None = None,
    ) -> BatchOutcome:
        """
        Validate and send one batch payment.

        Args:
            lines: ``(sale_id, amount)`` pairs or BatchLine objects
            receipt: Receipt shared by every payment of the batch
            payment_date: Payment date; a bare date is sent as midnight
            method: Payment method
            reference: Optional operation number printed on the receipt

        Returns:
            BatchSuccess with the created payments and the re-read pending sales,
            ValidationFailure when nothing was sent,
            SubmissionFailure when the backend or the network failed
        """
        method = PaymentMethod(method)
        batch = as_batch_lines(lines)

        date_errors: list[FieldError] = []
        try:
            wire_date: str | None = normalize_payment_date(payment_date)
        except ValueError:
            date_errors.append(FieldError.invalid_date())
            wire_date = None

        try:
            errors, totals = await self._validate(batch, receipt, date_errors)
        except ExternalServiceError as e:
            return self._failed(e, line_count=len(batch))

        if errors or receipt is None or wire_date is None:
            logger.info(
                "payment_batch_rejected",
                line_count=len(batch),
                errors=[e.kind.value for e in errors],
            )
            return ValidationFailure(errors=errors)

        form = {
            BATCH_LINES_FIELD: json.dumps(
                [
                    {"venta_id": sale_id, "monto": format_amount(amount)}
                    for sale_id, amount in totals.items()
                ]
            ),
            BATCH_DATE_FIELD: wire_date,
            BATCH_METHOD_FIELD: method.value,
        }
        if reference and reference.strip():
            form[BATCH_REFERENCE_FIELD] = reference.strip()

        try:
            payments = await self.repository.submit_payment_batch(form, receipt)
        except ExternalServiceError as e:
            # the batch may have been partially applied; do not trust the snapshot
            self.invalidate()
            return self._failed(e, line_count=len(batch))

        self.invalidate()
        logger.info(
            "payment_batch_submitted",
            sale_ids=list(totals),
            payment_count=len(payments),
            total=format_amount(sum(totals.values(), Decimal("0"))),
            method=method.value,
        )

        sales: list[Sale] | None
        try:
            sales = await self.load_pending_sales()
        except ExternalServiceError as e:
            logger.warning("pending_sales_refresh_failed", error=e.message)
            sales = None
        return BatchSuccess(payments=payments, sales=sales)

    async def _validate(
        self,
        batch: list[BatchLine],
        receipt: Receipt | None,
        extra_errors: list[FieldError] | None = None,
    ) -> tuple[list[FieldError], dict[int, Decimal]]:
        """Field checks first; balances are fetched only when those pass."""
        errors, totals = check_fields(batch, receipt)
        errors += extra_errors or []

        if errors and self._sales is None:
            return errors, totals

        snapshot = self._sales if self._sales is not None else await self._read_snapshot()
        balances = {sale_id: sale.balance_due for sale_id, sale in snapshot.items()}
        return errors + check_balances(totals, balances, self.epsilon), totals

    async def _read_snapshot(self) -> dict[int, Sale]:
        sales = await self.repository.list_pending_sales()
        snapshot = {sale.id: sale for sale in sales}
        self._sales = snapshot
        logger.info("pending_sales_loaded", count=len(sales))
        return snapshot

    def _failed(self, error: ExternalServiceError, line_count: int) -> SubmissionFailure:
        logger.error(
            "payment_batch_failed",
            line_count=line_count,
            upstream_status=error.upstream_status,
            error=error.message,
        )
        return SubmissionFailure(
            message=error.server_message or GENERIC_SUBMISSION_ERROR,
            upstream_status=error.upstream_status,
        )
