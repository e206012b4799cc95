"""
Unit tests for PaymentBatchAllocator.

Tests cover:
- Validation of every line before anything is sent
- The multipart form built for the backend
- Balances re-read after a successful batch
- Snapshot handling when the submission fails
"""

import json
from datetime import date, datetime
from decimal import Decimal

import pytest
from stockledger.core.constants import PaymentMethod
from stockledger.models import (
    BatchLine,
    BatchSuccess,
    Receipt,
    SubmissionFailure,
    ValidationErrorKind,
    ValidationFailure,
)
from stockledger.services import PaymentBatchAllocator
from stockledger.services.payment_batch import check_lines

from .fakes import FakeSalesBackend, backend_error, make_sale


@pytest.fixture
def two_sales() -> FakeSalesBackend:
    return FakeSalesBackend(sales=[make_sale(1, "100.00"), make_sale(2, "50.00")])


class TestBatchScenarios:
    @pytest.mark.asyncio
    async def test_one_line_over_balance_rejects_whole_batch(
        self, two_sales: FakeSalesBackend, receipt: Receipt
    ) -> None:
        allocator = PaymentBatchAllocator(two_sales)

        outcome = await allocator.submit_batch(
            [(1, "100.00"), (2, "60.00")], receipt, date(2024, 5, 10)
        )

        assert isinstance(outcome, ValidationFailure)
        assert len(outcome.errors) == 1
        error = outcome.errors[0]
        assert error.kind is ValidationErrorKind.AMOUNT_EXCEEDS_BALANCE
        assert error.sale_id == 2
        assert error.balance_due == Decimal("50.00")
        assert error.amount == Decimal("60.00")
        assert two_sales.submissions == []

    @pytest.mark.asyncio
    async def test_exact_balances_settle_both_sales(
        self, two_sales: FakeSalesBackend, receipt: Receipt
    ) -> None:
        allocator = PaymentBatchAllocator(two_sales)

        outcome = await allocator.submit_batch(
            [(1, "100.00"), (2, "50.00")], receipt, date(2024, 5, 10)
        )

        assert isinstance(outcome, BatchSuccess)
        assert [p.sale_id for p in outcome.payments] == [1, 2]
        assert {p.receipt_url for p in outcome.payments} == {"/uploads/voucher.png"}
        assert outcome.remaining_balance(1) == Decimal("0")
        assert outcome.remaining_balance(2) == Decimal("0")
        assert two_sales.sales[1].balance_due == Decimal("0.00")
        assert two_sales.sales[2].balance_due == Decimal("0.00")


class TestValidation:
    @pytest.mark.asyncio
    async def test_empty_batch_without_receipt(self, allocator: PaymentBatchAllocator) -> None:
        outcome = await allocator.submit_batch([], None, date(2024, 5, 10))

        assert isinstance(outcome, ValidationFailure)
        assert outcome.kinds == {
            ValidationErrorKind.NO_SALES_SELECTED,
            ValidationErrorKind.MISSING_RECEIPT,
        }

    @pytest.mark.asyncio
    async def test_empty_receipt_file(self, allocator: PaymentBatchAllocator) -> None:
        outcome = await allocator.submit_batch(
            [(1, "10")], Receipt.from_bytes(b""), date(2024, 5, 10)
        )

        assert isinstance(outcome, ValidationFailure)
        assert outcome.kinds == {ValidationErrorKind.MISSING_RECEIPT}

    @pytest.mark.asyncio
    async def test_every_bad_line_reported(
        self, allocator: PaymentBatchAllocator, sales_backend: FakeSalesBackend, receipt: Receipt
    ) -> None:
        await allocator.load_pending_sales()

        outcome = await allocator.submit_batch(
            [(1, "0"), (2, "abc"), (3, "20.00"), (1, "-5")], receipt, date(2024, 5, 10)
        )

        assert isinstance(outcome, ValidationFailure)
        assert [(e.kind.value, e.sale_id) for e in outcome.errors] == [
            ("invalid_amount", 1),
            ("invalid_amount", 2),
            ("invalid_amount", 1),
            ("amount_exceeds_balance", 3),
        ]
        assert len(outcome.for_sale(1)) == 2
        assert sales_backend.submissions == []

    @pytest.mark.asyncio
    async def test_field_errors_need_no_balances(
        self, allocator: PaymentBatchAllocator, sales_backend: FakeSalesBackend
    ) -> None:
        sales_backend.fail_next_list = backend_error(503)

        outcome = await allocator.submit_batch([], None, date(2024, 5, 10))
        failure = await allocator.validate_batch([(1, "abc"), (3, "20.00")], None)

        assert isinstance(outcome, ValidationFailure)
        assert outcome.kinds == {
            ValidationErrorKind.NO_SALES_SELECTED,
            ValidationErrorKind.MISSING_RECEIPT,
        }
        assert isinstance(failure, ValidationFailure)
        assert failure.kinds == {
            ValidationErrorKind.INVALID_AMOUNT,
            ValidationErrorKind.MISSING_RECEIPT,
        }
        assert sales_backend.list_calls == 0
        assert allocator.pending_sales is None

    @pytest.mark.asyncio
    async def test_sub_cent_amount_rejected(
        self, allocator: PaymentBatchAllocator, sales_backend: FakeSalesBackend, receipt: Receipt
    ) -> None:
        outcome = await allocator.submit_batch([(1, "0.004")], receipt, date(2024, 5, 10))

        assert isinstance(outcome, ValidationFailure)
        assert [(e.kind, e.sale_id) for e in outcome.errors] == [
            (ValidationErrorKind.INVALID_AMOUNT, 1)
        ]
        assert sales_backend.submissions == []

    @pytest.mark.asyncio
    async def test_amounts_checked_as_posted_cents(
        self, allocator: PaymentBatchAllocator, sales_backend: FakeSalesBackend, receipt: Receipt
    ) -> None:
        outcome = await allocator.submit_batch(
            [(3, "7.755"), (3, "7.745")], receipt, date(2024, 5, 10)
        )

        assert isinstance(outcome, ValidationFailure)
        assert outcome.errors[0].amount == Decimal("15.51")
        assert sales_backend.submissions == []

    @pytest.mark.asyncio
    async def test_epsilon_absorbs_rounding(
        self, allocator: PaymentBatchAllocator, receipt: Receipt
    ) -> None:
        failure = await allocator.validate_batch([(3, "15.5009")], receipt)
        assert failure is None

        failure = await allocator.validate_batch([(3, "15.51")], receipt)
        assert isinstance(failure, ValidationFailure)
        assert failure.kinds == {ValidationErrorKind.AMOUNT_EXCEEDS_BALANCE}

    @pytest.mark.asyncio
    async def test_lines_of_same_sale_are_summed(
        self, allocator: PaymentBatchAllocator, receipt: Receipt
    ) -> None:
        failure = await allocator.validate_batch([(1, "30"), (1, "20")], receipt)

        assert isinstance(failure, ValidationFailure)
        assert failure.errors[0].amount == Decimal("50")
        assert failure.errors[0].balance_due == Decimal("40.00")

    @pytest.mark.asyncio
    async def test_unknown_sale_has_no_balance(
        self, allocator: PaymentBatchAllocator, receipt: Receipt
    ) -> None:
        failure = await allocator.validate_batch([(77, "1.00")], receipt)

        assert isinstance(failure, ValidationFailure)
        assert failure.errors[0].kind is ValidationErrorKind.AMOUNT_EXCEEDS_BALANCE
        assert failure.errors[0].balance_due == Decimal("0")

    @pytest.mark.asyncio
    async def test_decimal_comma_accepted(
        self, allocator: PaymentBatchAllocator, receipt: Receipt
    ) -> None:
        assert await allocator.validate_batch([BatchLine(sale_id=3, amount="15,50")], receipt) is None

    @pytest.mark.asyncio
    async def test_invalid_date(self, allocator: PaymentBatchAllocator, receipt: Receipt) -> None:
        outcome = await allocator.submit_batch([(1, "10")], receipt, "10/05/2024")

        assert isinstance(outcome, ValidationFailure)
        assert outcome.kinds == {ValidationErrorKind.INVALID_DATE}

    def test_check_lines_is_pure(self, receipt: Receipt) -> None:
        lines = [BatchLine(sale_id=1, amount="10"), BatchLine(sale_id=2, amount="5")]
        balances = {1: Decimal("10"), 2: Decimal("4")}

        errors, totals = check_lines(lines, receipt, balances, Decimal("0.001"))

        assert [e.sale_id for e in errors] == [2]
        assert totals == {1: Decimal("10"), 2: Decimal("5")}
        assert balances == {1: Decimal("10"), 2: Decimal("4")}


class TestSubmission:
    @pytest.mark.asyncio
    async def test_form_fields(
        self, allocator: PaymentBatchAllocator, sales_backend: FakeSalesBackend, receipt: Receipt
    ) -> None:
        outcome = await allocator.submit_batch(
            [(1, "40"), (2, "12,5")],
            receipt,
            date(2024, 5, 10),
            method=PaymentMethod.YAPE_PLIN,
            reference="  OP-991  ",
        )

        assert isinstance(outcome, BatchSuccess)
        form, sent_receipt = sales_backend.submissions[0]
        assert json.loads(form["pagos_json_data"]) == [
            {"venta_id": 1, "monto": "40.00"},
            {"venta_id": 2, "monto": "12.50"},
        ]
        assert form["fecha"] == "2024-05-10T00:00:00"
        assert form["metodo_pago"] == "yape_plin"
        assert form["referencia"] == "OP-991"
        assert sent_receipt is receipt

    @pytest.mark.asyncio
    async def test_reference_omitted_when_blank(
        self, allocator: PaymentBatchAllocator, sales_backend: FakeSalesBackend, receipt: Receipt
    ) -> None:
        await allocator.submit_batch(
            [(3, "15.50")], receipt, datetime(2024, 5, 10, 9, 30), reference="   "
        )

        form, _ = sales_backend.submissions[0]
        assert "referencia" not in form
        assert form["fecha"] == "2024-05-10T09:30:00"
        assert form["metodo_pago"] == "transferencia"

    @pytest.mark.asyncio
    async def test_balances_reread_after_success(
        self, allocator: PaymentBatchAllocator, sales_backend: FakeSalesBackend, receipt: Receipt
    ) -> None:
        await allocator.load_pending_sales()

        outcome = await allocator.submit_batch([(1, "15"), (3, "15.50")], receipt, "2024-05-10")

        assert isinstance(outcome, BatchSuccess)
        assert sales_backend.list_calls == 2
        assert outcome.remaining_balance(1) == Decimal("25.00")
        assert outcome.remaining_balance(3) == Decimal("0")
        assert [s.id for s in outcome.sales or []] == [1, 2]
        assert allocator.balance_of(1) == Decimal("25.00")

    @pytest.mark.asyncio
    async def test_snapshot_loaded_on_demand(
        self, allocator: PaymentBatchAllocator, sales_backend: FakeSalesBackend
    ) -> None:
        assert allocator.pending_sales is None

        await allocator.validate_batch([(1, "1")], Receipt.from_bytes(b"x"))
        await allocator.validate_batch([(1, "1")], Receipt.from_bytes(b"x"))

        assert sales_backend.list_calls == 1
        assert allocator.balance_of(2) == Decimal("60.00")

    @pytest.mark.asyncio
    async def test_submission_failure_discards_snapshot(
        self, allocator: PaymentBatchAllocator, sales_backend: FakeSalesBackend, receipt: Receipt
    ) -> None:
        await allocator.load_pending_sales()
        sales_backend.fail_next_submit = backend_error(422, "Venta ya pagada")

        outcome = await allocator.submit_batch([(2, "60")], receipt, date(2024, 5, 10))

        assert isinstance(outcome, SubmissionFailure)
        assert outcome.message == "Venta ya pagada"
        assert outcome.upstream_status == 422
        assert allocator.pending_sales is None
        assert len(sales_backend.submissions) == 1

        retry = await allocator.submit_batch([(2, "60")], receipt, date(2024, 5, 10))

        assert isinstance(retry, BatchSuccess)
        assert sales_backend.list_calls == 3

    @pytest.mark.asyncio
    async def test_transport_failure_uses_generic_message(
        self, allocator: PaymentBatchAllocator, sales_backend: FakeSalesBackend, receipt: Receipt
    ) -> None:
        sales_backend.fail_next_submit = backend_error(None)

        outcome = await allocator.submit_batch([(2, "10")], receipt, date(2024, 5, 10))

        assert isinstance(outcome, SubmissionFailure)
        assert outcome.message == "The server could not process the request"
        assert outcome.upstream_status is None

    @pytest.mark.asyncio
    async def test_balances_unavailable(
        self, allocator: PaymentBatchAllocator, sales_backend: FakeSalesBackend, receipt: Receipt
    ) -> None:
        sales_backend.fail_next_list = backend_error(503)

        outcome = await allocator.submit_batch([(2, "10")], receipt, date(2024, 5, 10))

        assert isinstance(outcome, SubmissionFailure)
        assert outcome.upstream_status == 503
        assert sales_backend.submissions == []

    @pytest.mark.asyncio
    async def test_refresh_failure_after_success(
        self, allocator: PaymentBatchAllocator, sales_backend: FakeSalesBackend, receipt: Receipt
    ) -> None:
        await allocator.load_pending_sales()
        sales_backend.fail_next_list = backend_error(503)

        outcome = await allocator.submit_batch([(2, "10")], receipt, date(2024, 5, 10))

        assert isinstance(outcome, BatchSuccess)
        assert outcome.sales is None
        assert outcome.remaining_balance(2) is None
        assert allocator.pending_sales is None

    @pytest.mark.asyncio
    async def test_accepted_batch_without_payment_details(
        self, allocator: PaymentBatchAllocator, sales_backend: FakeSalesBackend, receipt: Receipt
    ) -> None:
        sales_backend.drop_payments_next = True

        outcome = await allocator.submit_batch([(1, "40.00")], receipt, date(2024, 5, 10))

        assert isinstance(outcome, BatchSuccess)
        assert outcome.payments == []
        assert outcome.remaining_balance(1) == Decimal("0")
        assert allocator.balance_of(1) == Decimal("0")
        assert sales_backend.list_calls == 2
