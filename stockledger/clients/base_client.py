"""
Base HTTP API client for the inventory/sales backend.

This module provides the base class for the backend clients with:
- Trace id and bearer token propagation via TracedHttpClient
- Retry of idempotent reads on transient failures (network errors, timeouts, 502/503/504)
- Single-shot writes: POST/PUT are never retried automatically
- Translation of every HTTP or transport failure into ExternalServiceError

Example:
    ```python
    async with InventoryAPIClient() as client:
        record = await client.get_inventory(12)
    ```
"""

from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from stockledger.config import Settings, get_settings
from stockledger.core.constants import GENERIC_SUBMISSION_ERROR, RETRYABLE_STATUS_CODES
from stockledger.core.exceptions import ExternalServiceError, UnexpectedResponseError
from stockledger.core.http_client import TracedHttpClient
from stockledger.core.logging import get_logger

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class _RetryableStatus(Exception):
    """Internal signal for a gateway status worth retrying."""

    def __init__(self, response: httpx.Response):
        self.response = response
        super().__init__(f"Retryable status {response.status_code}")


def extract_server_message(response: httpx.Response) -> str | None:
    """Pull the human readable message out of an error body, if there is one."""
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return text[:200] or None

    if isinstance(body, dict):
        for key in ("error", "message", "detail", "msg"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return None


class BaseAPIClient:
    """
    Base class for backend API clients.

    Reads go through ``_read_with_retry`` (tenacity, exponential backoff);
    writes go through ``_send_once``. Both return the decoded JSON body.

    Important:
        Always use 'async with' so the connection pool is opened and closed.

    Attributes:
        base_url: API base URL
        service_name: Name used in logs and errors
        default_timeout: Default timeout in seconds
        read_attempts: Attempts for GET requests
    """

    def __init__(self, base_url: str, service_name: str, settings: Settings | None = None) -> None:
        settings = settings or get_settings()

        self.base_url = base_url.rstrip("/")
        self.service_name = service_name
        self.default_timeout = float(settings.REQUEST_TIMEOUT_SECONDS)
        self.read_attempts = settings.READ_RETRY_ATTEMPTS
        self._token = settings.API_TOKEN
        self._retry_wait = wait_exponential(multiplier=1, min=1, max=5)

        # created in __aenter__
        self._client: TracedHttpClient | None = None

        logger.debug(
            "api_client_initialized",
            service=self.service_name,
            base_url=self.base_url,
            default_timeout=self.default_timeout,
        )

    async def __aenter__(self) -> "BaseAPIClient":
        self._client = TracedHttpClient(
            base_url=self.base_url,
            timeout=self.default_timeout,
            token=self._token,
        )
        await self._client.__aenter__()
        logger.debug("api_client_connected", service=self.service_name)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore
        if self._client:
            await self._client.__aexit__(exc_type, exc_val, exc_tb)
            self._client = None
        logger.debug("api_client_disconnected", service=self.service_name)

    def _ensure_connected(self) -> TracedHttpClient:
        if not self._client:
            raise RuntimeError(
                f"{self.service_name} client not initialized. Use 'async with' context manager."
            )
        return self._client

    def _decode(self, response: httpx.Response, method: str, endpoint: str) -> Any:
        """Return the JSON body of a successful response, raise for anything else."""
        if response.status_code >= 400:
            server_message = extract_server_message(response)
            logger.error(
                "api_http_error",
                service=self.service_name,
                method=method,
                endpoint=endpoint,
                status_code=response.status_code,
                server_message=server_message,
            )
            raise ExternalServiceError(
                server_message or f"{self.service_name} returned HTTP {response.status_code}",
                service_name=self.service_name,
                upstream_status=response.status_code,
                server_message=server_message,
            )

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise UnexpectedResponseError(
                f"{self.service_name} returned a non-JSON body",
                service_name=self.service_name,
                upstream_status=response.status_code,
            ) from e

    def _parse(self, model: type[ModelT], body: Any) -> ModelT:
        """Validate a successful response body; a mismatch raises UnexpectedResponseError."""
        try:
            return model.model_validate(body)
        except ValidationError as e:
            logger.error(
                "api_unexpected_body",
                service=self.service_name,
                model=model.__name__,
                errors=e.error_count(),
            )
            raise UnexpectedResponseError(
                f"{self.service_name} returned an unexpected {model.__name__} body",
                service_name=self.service_name,
            ) from e

    async def _read_with_retry(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """
        GET with automatic retry.

        Retries on:
        - httpx.TimeoutException / httpx.NetworkError
        - HTTP 502, 503, 504

        Does NOT retry on 4xx or other 5xx statuses.

        Raises:
            ExternalServiceError: On HTTP errors or after retry exhaustion
            RuntimeError: If client not initialized (forgot 'async with')
        """
        client = self._ensure_connected()
        kwargs: dict[str, Any] = {"params": params}
        if timeout:
            kwargs["timeout"] = timeout

        attempt_number = 0
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.read_attempts),
                wait=self._retry_wait,
                retry=retry_if_exception_type(
                    (httpx.TimeoutException, httpx.NetworkError, _RetryableStatus)
                ),
                reraise=True,
            ):
                with attempt:
                    attempt_number += 1
                    logger.debug(
                        "api_request_attempt",
                        service=self.service_name,
                        method="GET",
                        endpoint=endpoint,
                        attempt=attempt_number,
                        params=params,
                    )
                    try:
                        response = await client.request("GET", endpoint, **kwargs)
                    except (httpx.TimeoutException, httpx.NetworkError) as e:
                        logger.warning(
                            "api_transient_error",
                            service=self.service_name,
                            endpoint=endpoint,
                            attempt=attempt_number,
                            error=str(e),
                            error_type=type(e).__name__,
                        )
                        raise

                    if response.status_code in RETRYABLE_STATUS_CODES:
                        logger.warning(
                            "api_retryable_status",
                            service=self.service_name,
                            endpoint=endpoint,
                            status_code=response.status_code,
                            attempt=attempt_number,
                        )
                        raise _RetryableStatus(response)

                    return self._decode(response, "GET", endpoint)
        except _RetryableStatus as e:
            return self._decode(e.response, "GET", endpoint)
        except httpx.TransportError as e:
            raise ExternalServiceError(
                f"{self.service_name} unreachable after {attempt_number} attempts: {e}",
                service_name=self.service_name,
            ) from e
        except RetryError as e:
            raise ExternalServiceError(
                f"{self.service_name} request failed after retries",
                service_name=self.service_name,
            ) from e

        # unreachable with reraise=True
        raise ExternalServiceError(
            f"{self.service_name} request failed after retries",
            service_name=self.service_name,
        )

    async def _send_once(
        self,
        method: str,
        endpoint: str,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> Any:
        """
        Send a write exactly once.

        A timeout or dropped connection is reported as ExternalServiceError
        without an upstream status; the caller decides whether to retry.
        """
        client = self._ensure_connected()
        if timeout:
            kwargs["timeout"] = timeout

        try:
            response = await client.request(method, endpoint, **kwargs)
        except httpx.TransportError as e:
            logger.error(
                "api_write_transport_error",
                service=self.service_name,
                method=method,
                endpoint=endpoint,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ExternalServiceError(
                GENERIC_SUBMISSION_ERROR,
                service_name=self.service_name,
            ) from e

        return self._decode(response, method, endpoint)

    async def get(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """GET with retry; returns parsed JSON."""
        return await self._read_with_retry(endpoint, params=params, timeout=timeout)

    async def post(
        self,
        endpoint: str,
        json: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """POST a JSON body once; returns parsed JSON."""
        return await self._send_once("POST", endpoint, timeout=timeout, json=json)

    async def put(
        self,
        endpoint: str,
        json: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """PUT a JSON body once; returns parsed JSON."""
        return await self._send_once("PUT", endpoint, timeout=timeout, json=json)

    async def post_multipart(
        self,
        endpoint: str,
        data: dict[str, str],
        files: dict[str, tuple[str, bytes, str]],
        timeout: float | None = None,
    ) -> Any:
        """POST a multipart/form-data body once; returns parsed JSON."""
        return await self._send_once("POST", endpoint, timeout=timeout, data=data, files=files)
