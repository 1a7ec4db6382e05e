"""Events published on the in-process event bus.

Events describe things that already happened. Toasts are the user-facing
notifications a host UI renders; connectivity and sync events let services
react to each other without holding direct references.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from packsync.core.time_utils import utc_now

ToastVariant = Literal["default", "destructive"]


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """Base class for all events."""

    occurred_at: datetime = field(default_factory=utc_now)
    aggregate_id: int | None = None

    def __post_init__(self) -> None:
        """Validate event data after initialization."""
        if not isinstance(self.occurred_at, datetime):
            raise TypeError("occurred_at must be a datetime")


@dataclass(frozen=True, kw_only=True)
class Toast(DomainEvent):
    """A user-visible notification."""

    title: str
    description: str = ""
    variant: ToastVariant = "default"
    # Persistent toasts stay until dismissed (e.g. while offline).
    persistent: bool = False

    def __post_init__(self) -> None:
        """Validate event data."""
        super().__post_init__()
        if not self.title:
            raise ValueError("title cannot be empty")


@dataclass(frozen=True, kw_only=True)
class ConnectivityChanged(DomainEvent):
    """Raised on every online/offline transition."""

    online: bool


@dataclass(frozen=True, kw_only=True)
class OperationsReplayed(DomainEvent):
    """Raised after offline operations of one packing list were replayed."""

    packing_list_id: int
    replayed: int
    discarded: int = 0
    remaining: int = 0

    def __post_init__(self) -> None:
        """Validate event data."""
        super().__post_init__()
        if self.packing_list_id <= 0:
            raise ValueError("packing_list_id must be positive")
