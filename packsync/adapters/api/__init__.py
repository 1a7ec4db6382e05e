"""REST client for the packing-list backend."""

from packsync.adapters.api.client import PackingListApiClient, format_api_error
from packsync.adapters.api.endpoints import PackSyncApi
from packsync.adapters.api.errors import (
    ApiClientError,
    HttpError,
    NetworkError,
    RequestTimeoutError,
    ResponseParseError,
)

__all__ = [
    "ApiClientError",
    "HttpError",
    "NetworkError",
    "PackSyncApi",
    "PackingListApiClient",
    "RequestTimeoutError",
    "ResponseParseError",
    "format_api_error",
]
