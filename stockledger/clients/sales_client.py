"""
HTTP client for sales balances and batch payments.

Example:
    ```python
    async with SalesAPIClient() as client:
        sales = await client.list_pending_sales()
        payments = await client.submit_payment_batch(form, receipt)
    ```
"""

from typing import Any, Protocol

from pydantic import ValidationError

from stockledger.clients.base_client import BaseAPIClient
from stockledger.config import Settings, get_settings
from stockledger.core.constants import (
    BATCH_RECEIPT_FIELD,
    OPEN_PAYMENT_STATUSES,
    PAYMENT_BATCH_ENDPOINT,
    SALES_ENDPOINT,
)
from stockledger.core.exceptions import UnexpectedResponseError
from stockledger.core.logging import get_logger
from stockledger.models.sales import Payment, Receipt, Sale, SalePage

logger = get_logger(__name__)


class SalesRepository(Protocol):
    """Interface the payment allocator needs from the sales backend."""

    async def list_pending_sales(self) -> list[Sale]: ...

    async def submit_payment_batch(
        self, form: dict[str, str], receipt: Receipt
    ) -> list[Payment]: ...


class SalesAPIClient(BaseAPIClient):
    """Client for ``/ventas`` and ``/pagos/batch``."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        super().__init__(base_url=settings.API_BASE_URL, service_name="sales-api", settings=settings)

    async def list_pending_sales(self) -> list[Sale]:
        """Sales whose payment status is still pending or partial."""
        status_filter = ",".join(s.value for s in OPEN_PAYMENT_STATUSES)
        body = await self.get(SALES_ENDPOINT, params={"estado_pago": status_filter})

        # some deployments answer with a bare list instead of {data: [...]}
        if isinstance(body, list):
            logger.warning("pending_sales_bare_list", count=len(body))
            body = {"data": body}
        return self._parse(SalePage, body or {}).data

    async def submit_payment_batch(self, form: dict[str, str], receipt: Receipt) -> list[Payment]:
        """
        POST one multipart batch.

        Any 2xx means the batch was applied. When the body does not describe
        the created payments they are left out of the result; callers re-read
        balances anyway.

        Args:
            form: Text fields (``pagos_json_data``, ``fecha``, ``metodo_pago``, ``referencia``)
            receipt: File sent as ``comprobante``

        Returns:
            Payment records created by the backend, possibly empty
        """
        try:
            body = await self.post_multipart(
                PAYMENT_BATCH_ENDPOINT,
                data=form,
                files={BATCH_RECEIPT_FIELD: receipt.as_upload()},
            )
        except UnexpectedResponseError as e:
            logger.warning("payment_batch_body_unreadable", error=e.message)
            return []
        return self._parse_payments(body)

    def _parse_payments(self, body: Any) -> list[Payment]:
        if isinstance(body, dict):
            body = body.get("data", body.get("pagos"))
        if not isinstance(body, list):
            logger.warning("payment_batch_without_payments", body_type=type(body).__name__)
            return []

        payments = []
        for item in body:
            try:
                payments.append(Payment.model_validate(item))
            except ValidationError as e:
                logger.warning(
                    "payment_item_unreadable",
                    item=item,
                    errors=e.error_count(),
                )
        return payments
