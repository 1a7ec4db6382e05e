"""Service-layer errors."""

from packsync.domain.exceptions import PackSyncError


class ProviderNotConfiguredError(PackSyncError):
    """Raised when a context-scoped service is used outside its provider."""

    pass
