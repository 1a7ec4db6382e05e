"""Error taxonomy of the packing-list REST client."""

from __future__ import annotations

from typing import Any, Literal

from packsync.domain.exceptions import PackSyncError

ErrorKind = Literal["network", "timeout", "http", "parse"]


class ApiClientError(PackSyncError):
    """Base exception for REST client errors.

    ``status`` is 0 when no HTTP response was received.
    """

    kind: ErrorKind = "network"

    def __init__(self, message: str, status: int = 0, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details)
        self.status = status

    @property
    def is_retryable(self) -> bool:
        """Whether a GET failing with this error may be retried."""
        return self.status == 0 or self.status >= 500

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, status={self.status})"


class NetworkError(ApiClientError):
    """The request never produced a response (DNS, refused connection...)."""

    kind: ErrorKind = "network"


class RequestTimeoutError(ApiClientError):
    """The request was aborted after the configured timeout."""

    kind: ErrorKind = "timeout"


class HttpError(ApiClientError):
    """The server answered with a non-2xx status."""

    kind: ErrorKind = "http"


class ResponseParseError(ApiClientError):
    """The response body was not valid JSON or did not fit the expected model."""

    kind: ErrorKind = "parse"

    @property
    def is_retryable(self) -> bool:
        return False
