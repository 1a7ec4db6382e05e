"""Base exception types shared across packsync layers."""


class PackSyncError(Exception):
    """Base exception for all packsync errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidOperationError(PackSyncError):
    """Raised when a pending operation violates its shape rules."""

    pass
