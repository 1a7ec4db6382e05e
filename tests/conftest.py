"""Pytest configuration and shared fixtures.

This module provides common fixtures for all tests.
"""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from packsync.domain.events import Toast
from packsync.infrastructure.cache.invalidation_batcher import BatchedInvalidationManager
from packsync.infrastructure.cache.query_cache import QueryCache
from packsync.infrastructure.messaging.event_bus import EventBus
from packsync.infrastructure.persistence.database import StorageDatabase
from packsync.infrastructure.persistence.offline_store import OfflineOperationStore
from packsync.services.collaborative_mutation import MutationContext
from packsync.services.network_status import NetworkStatus
from packsync.services.sync_status import SyncStatus


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


class _ManualTimer:
    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose timers only fire when ``advance`` moves the clock past them."""

    def __init__(self, clock: FakeClock) -> None:
        self._clock = clock
        self._timers: list[_ManualTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualTimer:
        timer = _ManualTimer(self._clock() + delay, callback)
        self._timers.append(timer)
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for timer in self._timers if not timer.cancelled)

    def advance(self, seconds: float) -> None:
        target = self._clock.now + seconds
        while True:
            due = [t for t in self._timers if not t.cancelled and t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self._timers.remove(timer)
            self._clock.now = max(self._clock.now, timer.due)
            timer.callback()
        self._clock.now = target
        self._timers = [t for t in self._timers if not t.cancelled]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler(clock: FakeClock) -> ManualScheduler:
    return ManualScheduler(clock)


@pytest.fixture
def database(tmp_path):
    """File-backed SQLite database migrated for the test."""
    db = StorageDatabase(path=str(tmp_path / "packsync.db"))
    db.migrate()
    yield db
    db.close()


@pytest.fixture
def offline_store(database: StorageDatabase) -> OfflineOperationStore:
    return OfflineOperationStore(database)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def toasts(event_bus: EventBus) -> list[Toast]:
    """Every toast published on ``event_bus``."""
    received: list[Toast] = []

    async def _collect(toast: Toast) -> None:
        received.append(toast)

    event_bus.subscribe(Toast, _collect)
    return received


@pytest.fixture
def invalidator() -> AsyncMock:
    return AsyncMock(return_value=0)


@pytest.fixture
def batcher(invalidator: AsyncMock, clock: FakeClock, scheduler: ManualScheduler):
    return BatchedInvalidationManager(invalidator, clock=clock, scheduler=scheduler)


@pytest.fixture
def entity_endpoint() -> MagicMock:
    """Create/update/delete endpoint shared by every entity type."""
    endpoint = MagicMock()
    endpoint.create = AsyncMock()
    endpoint.update = AsyncMock()
    endpoint.delete = AsyncMock(return_value=None)
    return endpoint


@pytest.fixture
def api(entity_endpoint: MagicMock) -> MagicMock:
    mock_api = MagicMock()
    mock_api.entity.return_value = entity_endpoint
    return mock_api


@pytest.fixture
def make_context(api, batcher, offline_store, event_bus, clock):
    """Factory building a mutation context with the given connectivity."""

    def _make(*, online: bool = True) -> MutationContext:
        return MutationContext(
            api=api,
            cache=QueryCache(clock=clock),
            batcher=batcher,
            sync_status=SyncStatus(),
            network=NetworkStatus(event_bus, initially_online=online),
            offline_store=offline_store,
            event_bus=event_bus,
        )

    return _make
