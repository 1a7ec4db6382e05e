"""Property-based tests for the sync layer using Hypothesis.

These tests verify the counter, batching and rollback guarantees hold for
arbitrary sequences of operations.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

hypothesis = pytest.importorskip("hypothesis")
from hypothesis import given, settings, strategies as st

from packsync.adapters.api.errors import HttpError
from packsync.domain.models import EntityType
from packsync.infrastructure.cache.invalidation_batcher import BatchedInvalidationManager
from packsync.infrastructure.cache.query_cache import QueryCache
from packsync.infrastructure.cache.query_keys import QueryKey, Resource
from packsync.infrastructure.messaging.event_bus import EventBus
from packsync.services.collaborative_mutation import (
    CollaborativeMutation,
    MutationContext,
    MutationStatus,
)
from packsync.services.network_status import NetworkStatus
from packsync.services.sync_status import SyncStatus
from tests.conftest import FakeClock, ManualScheduler

resource_sets = st.lists(
    st.sets(st.sampled_from(list(Resource)), min_size=1, max_size=4),
    min_size=1,
    max_size=8,
)

item_rows = st.lists(
    st.fixed_dictionaries(
        {
            "id": st.integers(min_value=1, max_value=50),
            "name": st.text(max_size=20),
            "packed": st.booleans(),
        }
    ),
    max_size=10,
)


class TestSyncStatusProperties:
    @given(steps=st.lists(st.booleans(), max_size=60))
    @settings(max_examples=100, deadline=None)
    def test_counter_never_negative(self, steps: list[bool]) -> None:
        """Verify arbitrary increment/decrement sequences never go below zero."""
        status = SyncStatus()
        expected = 0
        for increment in steps:
            if increment:
                status.increment_pending()
                expected += 1
            else:
                status.decrement_pending()
                expected = max(0, expected - 1)
            assert status.pending_operations == expected >= 0
            assert status.is_pending == (expected > 0)


class TestBatchingProperties:
    @given(
        requests=resource_sets,
        gaps=st.lists(st.floats(min_value=0.0, max_value=0.14), min_size=8, max_size=8),
    )
    @settings(max_examples=50, deadline=None)
    def test_burst_flushes_once_with_union(self, requests, gaps) -> None:
        """Verify requests closer together than the window produce a single flush."""

        async def scenario() -> AsyncMock:
            clock = FakeClock()
            scheduler = ManualScheduler(clock)
            invalidator = AsyncMock()
            batcher = BatchedInvalidationManager(invalidator, clock=clock, scheduler=scheduler)
            for resources, gap in zip(requests, gaps, strict=False):
                batcher.add_to_invalidation_batch(4, {QueryKey(4, r) for r in resources})
                scheduler.advance(gap)
            scheduler.advance(1.0)
            await batcher.drain()
            return invalidator

        invalidator = asyncio.run(scenario())

        invalidator.assert_awaited_once()
        expected = {QueryKey(4, r) for resources in requests for r in resources}
        assert invalidator.await_args.args == (4, frozenset(expected))


class TestRollbackProperties:
    @given(rows=item_rows, target=st.integers(min_value=1, max_value=50), packed=st.booleans())
    @settings(max_examples=50, deadline=None)
    def test_failed_update_restores_cache_exactly(self, rows, target, packed) -> None:
        """Verify a rejected update leaves the cache exactly as it was."""
        key = QueryKey(7, Resource.ITEMS)

        async def scenario() -> tuple[object, object, int]:
            cache = QueryCache()
            cache.set_query_data(key, rows)
            api = MagicMock()
            api.entity.return_value.update = AsyncMock(
                side_effect=HttpError("Internal Server Error", status=500)
            )
            store = MagicMock()
            store.record = AsyncMock(return_value=1)
            store.discard = AsyncMock(return_value=True)
            event_bus = EventBus()
            ctx = MutationContext(
                api=api,
                cache=cache,
                batcher=MagicMock(),
                sync_status=SyncStatus(),
                network=NetworkStatus(event_bus),
                offline_store=store,
                event_bus=event_bus,
            )
            result = await CollaborativeMutation(EntityType.ITEM, 7, ctx).update(
                target, {"packed": packed}
            )
            return result.status, cache.get_query_data(key), ctx.sync_status.pending_operations

        status, restored, pending = asyncio.run(scenario())

        assert status is MutationStatus.FAILED
        assert restored == rows
        assert pending == 0
