class StockLedgerError(Exception):
    """Base exception for the stock ledger client"""

    def __init__(self, message: str, error_code: str = "INTERNAL_ERROR"):
        self.message = message
        self.error_code = error_code
        super().__init__(message)


class ConfigurationError(StockLedgerError):
    """Raised when configuration is invalid"""

    def __init__(self, message: str):
        super().__init__(message, error_code="CONFIGURATION_ERROR")


class ExternalServiceError(StockLedgerError):
    """
    Raised when a call to the backend fails.

    Attributes:
        service_name: Client that made the call
        upstream_status: HTTP status returned by the backend (None on transport failure)
        server_message: Message extracted from the error body, when there was one
    """

    def __init__(
        self,
        message: str,
        service_name: str,
        upstream_status: int | None = None,
        server_message: str | None = None,
    ):
        self.service_name = service_name
        self.upstream_status = upstream_status
        self.server_message = server_message
        super().__init__(message, error_code="EXTERNAL_SERVICE_ERROR")


class NoEligibleLots(StockLedgerError):
    """Raised when no lot matches the product a caller wants to attach stock to"""

    def __init__(self, product_id: int | None):
        self.product_id = product_id
        super().__init__(
            f"No lots available for product {product_id}", error_code="NO_ELIGIBLE_LOTS"
        )


class UnexpectedResponseError(ExternalServiceError):
    """
    Raised when the backend answered 2xx but the body could not be parsed.

    The request was accepted, so a write that ends here has been applied.
    """
