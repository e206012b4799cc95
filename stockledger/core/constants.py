"""Backend constants"""

from enum import StrEnum


class MovementType(StrEnum):
    """Stock movement direction as the backend names it"""

    ENTRADA = "entrada"
    SALIDA = "salida"


class AdjustmentDirection(StrEnum):
    """Direction of a manual stock adjustment"""

    INCREASE = "increase"
    DECREASE = "decrease"

    @property
    def movement_type(self) -> MovementType:
        return MovementType.ENTRADA if self is AdjustmentDirection.INCREASE else MovementType.SALIDA


class PaymentMethod(StrEnum):
    """Payment methods accepted by the backend"""

    EFECTIVO = "efectivo"
    TRANSFERENCIA = "transferencia"
    DEPOSITO = "deposito"
    TARJETA = "tarjeta"
    YAPE_PLIN = "yape_plin"
    OTRO = "otro"


class PaymentStatus(StrEnum):
    """Sale payment status"""

    PENDIENTE = "pendiente"
    PARCIAL = "parcial"
    PAGADO = "pagado"


# Endpoints
INVENTORY_ENDPOINT = "/inventarios"
MOVEMENTS_ENDPOINT = "/movimientos"
LOTS_ENDPOINT = "/lotes"
SALES_ENDPOINT = "/ventas"
PAYMENT_BATCH_ENDPOINT = "/pagos/batch"

# Sales that still accept payments
OPEN_PAYMENT_STATUSES = (PaymentStatus.PENDIENTE, PaymentStatus.PARCIAL)

# Multipart field names of the batch payment form
BATCH_LINES_FIELD = "pagos_json_data"
BATCH_DATE_FIELD = "fecha"
BATCH_METHOD_FIELD = "metodo_pago"
BATCH_REFERENCE_FIELD = "referencia"
BATCH_RECEIPT_FIELD = "comprobante"

DEFAULT_RECEIPT_STEM = "comprobante"

# HTTP
RETRYABLE_STATUS_CODES = {502, 503, 504}
REJECTION_STATUS_CODES = {400, 404, 409, 422}
GENERIC_SUBMISSION_ERROR = "The server could not process the request"
