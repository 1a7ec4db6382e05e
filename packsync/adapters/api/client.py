"""Async HTTP client for the packing-list REST API."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from packsync.adapters.api.errors import (
    ApiClientError,
    HttpError,
    NetworkError,
    RequestTimeoutError,
    ResponseParseError,
)
from packsync.core.backoff import backoff_delay
from packsync.core.logging_utils import generate_correlation_id

if TYPE_CHECKING:
    from typing import Self

    from packsync.config import ApiClientConfig

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_GET_RETRIES = 2

ResponseParser = Callable[[Any], Any]


def format_api_error(response: httpx.Response, *, method: str = "", path: str = "") -> HttpError:
    """Build an HttpError from a non-2xx response.

    The message comes from the JSON ``message`` field when the body is JSON,
    otherwise from the plain-text body, otherwise from the reason phrase.
    """
    status = response.status_code
    message = response.reason_phrase or f"HTTP {status}"
    body: Any = None

    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            message = str(body["message"])
    else:
        text = response.text.strip()
        if text:
            message = text
            body = text

    return HttpError(
        message,
        status=status,
        details={"method": method, "path": path, "body": body},
    )


class PackingListApiClient:
    """Thin REST client with timeouts, cookie session, and GET retries.

    Only GET requests are retried, and only on transport failures, timeouts
    and 5xx responses. Mutating requests are sent exactly once.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        get_retries: int = DEFAULT_GET_RETRIES,
        retry_initial_delay: float = 0.5,
        retry_max_delay: float = 5.0,
        retry_backoff_factor: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Backend origin, e.g. ``http://localhost:5000``
            timeout: Per-request timeout in seconds
            get_retries: Retry attempts for GET requests
            retry_initial_delay: First backoff delay in seconds
            retry_max_delay: Backoff cap in seconds
            retry_backoff_factor: Exponential backoff multiplier
            transport: Optional transport override (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.get_retries = get_retries
        self.retry_initial_delay = retry_initial_delay
        self.retry_max_delay = retry_max_delay
        self.retry_backoff_factor = retry_backoff_factor
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(
        cls, config: ApiClientConfig, *, transport: httpx.AsyncBaseTransport | None = None
    ) -> PackingListApiClient:
        return cls(
            config.base_url,
            timeout=config.request_timeout_sec,
            get_retries=config.get_retries,
            retry_initial_delay=config.retry_initial_delay_sec,
            retry_max_delay=config.retry_max_delay_sec,
            retry_backoff_factor=config.retry_backoff_factor,
            transport=transport,
        )

    async def __aenter__(self) -> Self:
        """Enter async context."""
        self.open()
        return self

    async def __aexit__(self, *args: object) -> None:
        """Exit async context."""
        await self.aclose()

    def open(self) -> None:
        """Create the underlying HTTP client. Cookies persist across requests."""
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Accept": "application/json"},
            timeout=self.timeout,
            follow_redirects=True,
            transport=self._transport,
        )

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client."""
        if self._client is None:
            raise NetworkError("Client not initialized. Use async context manager.")
        return self._client

    def url_for(self, path: str) -> str:
        """Absolute URL for a path (for links the host opens itself)."""
        return f"{self.base_url}{path}"

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        *,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
        retries: int | None = None,
        parse: ResponseParser | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        When ``parse`` is given the decoded body is passed through it and its
        result is returned instead.

        Raises:
            NetworkError: The request failed before a response arrived
            RequestTimeoutError: The request exceeded its timeout
            HttpError: The server answered with a non-2xx status
            ResponseParseError: The body was not valid JSON or was rejected by ``parse``
        """
        method = method.upper()
        max_retries = self.get_retries if retries is None else retries
        if method != "GET":
            max_retries = 0

        for attempt in range(max_retries + 1):
            try:
                return await self._execute(
                    method, path, json, params, timeout or self.timeout, parse
                )
            except ApiClientError as exc:
                if not exc.is_retryable or attempt == max_retries:
                    if attempt > 0:
                        logger.error(
                            "api_retry_exhausted",
                            extra={
                                "method": method,
                                "path": path,
                                "attempts": attempt + 1,
                                "error": exc.message,
                            },
                        )
                    raise

                delay = backoff_delay(
                    attempt,
                    initial_delay=self.retry_initial_delay,
                    max_delay=self.retry_max_delay,
                    backoff_factor=self.retry_backoff_factor,
                )
                logger.warning(
                    "api_retry_attempt",
                    extra={
                        "method": method,
                        "path": path,
                        "attempt": attempt + 1,
                        "max_retries": max_retries,
                        "delay_seconds": round(delay, 2),
                        "error": exc.message,
                        "status": exc.status,
                    },
                )
                await asyncio.sleep(delay)

        # Should not reach here, but type checker needs this
        raise NetworkError(f"{method} {path} failed")

    async def _execute(
        self,
        method: str,
        path: str,
        json: Any,
        params: dict[str, Any] | None,
        timeout: float,
        parse: ResponseParser | None = None,
    ) -> Any:
        request_id = generate_correlation_id()
        started = time.perf_counter()
        logger.debug(
            "api_request",
            extra={"request_id": request_id, "method": method, "path": path},
        )

        try:
            response = await self.client.request(
                method, path, json=json, params=params, timeout=timeout
            )
        except httpx.TimeoutException as exc:
            logger.warning(
                "api_request_timeout",
                extra={"request_id": request_id, "method": method, "path": path},
            )
            raise RequestTimeoutError(
                f"Request timed out after {timeout:g} seconds",
                details={"method": method, "path": path},
            ) from exc
        except httpx.TransportError as exc:
            logger.warning(
                "api_network_error",
                extra={
                    "request_id": request_id,
                    "method": method,
                    "path": path,
                    "error": str(exc),
                },
            )
            raise NetworkError(
                str(exc) or "Network request failed",
                details={"method": method, "path": path},
            ) from exc

        latency_ms = int((time.perf_counter() - started) * 1000)

        if not response.is_success:
            error = format_api_error(response, method=method, path=path)
            logger.warning(
                "api_http_error",
                extra={
                    "request_id": request_id,
                    "method": method,
                    "path": path,
                    "status": error.status,
                    "error": error.message,
                    "latency_ms": latency_ms,
                },
            )
            raise error

        logger.debug(
            "api_response",
            extra={
                "request_id": request_id,
                "status": response.status_code,
                "latency_ms": latency_ms,
            },
        )

        if response.status_code == 204:
            data: Any = {}
        else:
            try:
                data = response.json()
            except ValueError as exc:
                logger.error(
                    "api_response_parse_failed",
                    extra={"request_id": request_id, "method": method, "path": path},
                )
                raise ResponseParseError(
                    "Failed to parse server response",
                    status=response.status_code,
                    details={"method": method, "path": path},
                ) from exc

        if parse is None:
            return data
        try:
            return parse(data)
        except ValidationError as exc:
            logger.error(
                "api_response_invalid",
                extra={
                    "request_id": request_id,
                    "method": method,
                    "path": path,
                    "status": response.status_code,
                    "errors": exc.error_count(),
                },
            )
            raise ResponseParseError(
                "Unexpected server response",
                status=response.status_code,
                details={"method": method, "path": path},
            ) from exc

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("POST", path, json, **kwargs)

    async def patch(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("PATCH", path, json, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)
