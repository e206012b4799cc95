"""
httpx wrapper that logs every exchange with the backend.

Every outgoing request:
- carries an ``X-Request-ID`` taken from the structlog context (``trace_id``)
- carries the session's bearer token when one is configured
- is logged when sent and when its response arrives, with the duration

Usage:
    from stockledger.core.http_client import TracedHttpClient

    async with TracedHttpClient("http://backend/api", token="...") as client:
        response = await client.get("/inventarios/12")
"""

import time
from types import TracebackType
from typing import Any

import httpx
import structlog

logger = structlog.get_logger(__name__)

DEFAULT_TRACE_ID = "mobile-client"


class ExchangeLogger:
    """httpx event hooks for request/response logging and trace propagation."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token

    async def on_request(self, request: httpx.Request) -> None:
        """Add trace and auth headers, then log the outgoing request."""
        ctx = structlog.contextvars.get_contextvars()
        trace_id = ctx.get("trace_id", DEFAULT_TRACE_ID)

        request.headers["X-Request-ID"] = trace_id
        if self._token and "Authorization" not in request.headers:
            request.headers["Authorization"] = f"Bearer {self._token}"
        request.extensions["start_time"] = time.perf_counter()

        logger.info(
            "backend_request_started",
            method=request.method,
            url=str(request.url),
            trace_id=trace_id,
        )

    async def on_response(self, response: httpx.Response) -> None:
        """Log the response. The body is only read for errors."""
        start_time = response.request.extensions.get("start_time")
        if start_time is not None:
            duration_ms = (time.perf_counter() - start_time) * 1000
        else:
            try:
                duration_ms = response.elapsed.total_seconds() * 1000
            except RuntimeError:
                duration_ms = 0

        if response.status_code >= 400:
            await response.aread()
            logger.warning(
                "backend_request_failed",
                status_code=response.status_code,
                method=response.request.method,
                url=str(response.request.url),
                duration_ms=round(duration_ms, 2),
                response_body=response.text[:500],
            )
        else:
            logger.info(
                "backend_request_completed",
                method=response.request.method,
                url=str(response.request.url),
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )


class TracedHttpClient:
    """
    Async HTTP client bound to one backend base URL.

    Args:
        base_url: Backend URL (e.g. "http://localhost:5000/api")
        timeout: Request timeout in seconds
        token: Optional bearer token sent on every request

    Must be used as an async context manager; the underlying
    ``httpx.AsyncClient`` only exists inside the ``async with`` block.
    """

    def __init__(self, base_url: str, timeout: float = 15.0, token: str | None = None):
        self.base_url = base_url
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None
        self._exchange_logger = ExchangeLogger(token)

    async def __aenter__(self) -> "TracedHttpClient":
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"Accept": "application/json"},
            event_hooks={
                "request": [self._exchange_logger.on_request],
                "response": [self._exchange_logger.on_response],
            },
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_initialized(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")
        return self._client

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request with trace and auth headers."""
        return await self._ensure_initialized().request(method, url, **kwargs)
