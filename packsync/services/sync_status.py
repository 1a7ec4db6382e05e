"""Process-wide counter of in-flight mutations."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable, Iterator
from contextlib import asynccontextmanager, contextmanager
from contextvars import ContextVar
from dataclasses import dataclass

from packsync.services.errors import ProviderNotConfiguredError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncStatusSnapshot:
    pending_operations: int
    is_pending: bool


SyncStatusListener = Callable[[SyncStatusSnapshot], None]


class SyncStatus:
    """Counts mutations between their start and their completion.

    The counter never goes below zero; an unmatched decrement is clamped.
    Listeners are notified after every change.
    """

    def __init__(self) -> None:
        self._pending = 0
        self._listeners: list[SyncStatusListener] = []

    @property
    def pending_operations(self) -> int:
        return self._pending

    @property
    def is_pending(self) -> bool:
        return self._pending > 0

    def snapshot(self) -> SyncStatusSnapshot:
        return SyncStatusSnapshot(pending_operations=self._pending, is_pending=self.is_pending)

    def increment_pending(self) -> None:
        self._pending += 1
        self._notify()

    def decrement_pending(self) -> None:
        if self._pending == 0:
            logger.debug("sync_status_decrement_clamped")
        self._pending = max(0, self._pending - 1)
        self._notify()

    @asynccontextmanager
    async def track(self) -> AsyncIterator[SyncStatus]:
        """Hold one pending slot for the duration of the block."""
        self.increment_pending()
        try:
            yield self
        finally:
            self.decrement_pending()

    def subscribe(self, listener: SyncStatusListener) -> Callable[[], None]:
        """Register ``listener``; returns a function that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("sync_status_listener_failed")


_current_sync_status: ContextVar[SyncStatus | None] = ContextVar(
    "packsync_sync_status", default=None
)


@contextmanager
def sync_status_provider(status: SyncStatus | None = None) -> Iterator[SyncStatus]:
    """Make ``status`` (or a new instance) available to ``use_sync_status``."""
    provided = status or SyncStatus()
    token = _current_sync_status.set(provided)
    try:
        yield provided
    finally:
        _current_sync_status.reset(token)


def use_sync_status() -> SyncStatus:
    status = _current_sync_status.get()
    if status is None:
        msg = "use_sync_status() must be called inside sync_status_provider()"
        raise ProviderNotConfiguredError(msg)
    return status
