"""Tests for the debounced invalidation batcher."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from packsync.domain.models import EntityType
from packsync.infrastructure.cache.invalidation_batcher import BatchedInvalidationManager, BatchState
from packsync.infrastructure.cache.query_keys import QueryKey, Resource, plan_invalidation

from tests.conftest import FakeClock, ManualScheduler


def _keys(list_id: int, *resources: Resource) -> set[QueryKey]:
    return {QueryKey(list_id, resource) for resource in (*resources, Resource.COMPLETE)}


class TestBatching:
    @pytest.mark.asyncio
    async def test_burst_is_flushed_once_with_union_of_keys(self, batcher, invalidator, scheduler):
        """Requests inside the window merge into one flush."""
        batcher.add_to_invalidation_batch(7, _keys(7, Resource.ITEMS))
        scheduler.advance(0.05)
        batcher.add_to_invalidation_batch(7, _keys(7, Resource.BAGS))
        scheduler.advance(0.05)
        batcher.add_to_invalidation_batch(7, _keys(7, Resource.TRAVELERS))

        assert invalidator.await_count == 0
        assert batcher.state(7) is BatchState.ACCUMULATING

        scheduler.advance(0.2)
        await batcher.drain()

        invalidator.assert_awaited_once()
        list_id, keys = invalidator.await_args.args
        assert list_id == 7
        assert keys == _keys(7, Resource.ITEMS, Resource.BAGS, Resource.TRAVELERS)
        assert batcher.state(7) is BatchState.IDLE

    @pytest.mark.asyncio
    async def test_window_slides_with_each_request(self, batcher, invalidator, scheduler):
        batcher.add_to_invalidation_batch(7, _keys(7, Resource.ITEMS))
        scheduler.advance(0.1)
        batcher.add_to_invalidation_batch(7, _keys(7, Resource.ITEMS))
        scheduler.advance(0.1)
        await batcher.drain()

        assert invalidator.await_count == 0

        scheduler.advance(0.06)
        await batcher.drain()

        invalidator.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_lists_are_flushed_independently(self, batcher, invalidator, scheduler):
        batcher.batch_invalidate_entity(7, EntityType.ITEM)
        batcher.batch_invalidate_entity(8, EntityType.BAG)

        scheduler.advance(0.2)
        await batcher.drain()

        flushed = {call.args[0]: call.args[1] for call in invalidator.await_args_list}
        assert flushed == {
            7: plan_invalidation(7, EntityType.ITEM).keys,
            8: plan_invalidation(8, EntityType.BAG).keys,
        }

    @pytest.mark.asyncio
    async def test_young_batch_waits_for_recheck(self, invalidator):
        clock = FakeClock()
        scheduler = ManualScheduler(clock)
        batcher = BatchedInvalidationManager(
            invalidator,
            clock=clock,
            scheduler=scheduler,
            debounce_window=0.05,
            min_batch_age=0.1,
            recheck_interval=0.05,
        )

        batcher.add_to_invalidation_batch(3, _keys(3, Resource.ITEMS))
        scheduler.advance(0.06)
        await batcher.drain()

        assert invalidator.await_count == 0
        assert batcher.state(3) is BatchState.ACCUMULATING
        assert scheduler.pending == 1

        scheduler.advance(0.06)
        await batcher.drain()

        invalidator.assert_awaited_once()
        assert scheduler.pending == 0

    def test_foreign_keys_are_rejected(self, batcher):
        with pytest.raises(ValueError, match="do not belong to list 7"):
            batcher.add_to_invalidation_batch(7, {QueryKey(8, Resource.ITEMS)})


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_state_is_flushing_while_invalidator_runs(self, clock, scheduler):
        release = asyncio.Event()

        async def slow_invalidator(list_id, keys):
            await release.wait()

        batcher = BatchedInvalidationManager(slow_invalidator, clock=clock, scheduler=scheduler)
        batcher.add_to_invalidation_batch(5, _keys(5, Resource.BAGS))
        scheduler.advance(0.2)

        assert batcher.state(5) is BatchState.FLUSHING
        assert batcher.has_pending

        # A request during the flush starts a new accumulating cycle
        batcher.add_to_invalidation_batch(5, _keys(5, Resource.ITEMS))
        assert batcher.state(5) is BatchState.ACCUMULATING

        release.set()
        scheduler.advance(0.2)
        await batcher.drain()

        assert batcher.state(5) is BatchState.IDLE
        assert batcher.stats["flushes"] == 2

    @pytest.mark.asyncio
    async def test_clear_batches_drops_pending_work(self, batcher, invalidator, scheduler):
        batcher.batch_invalidate_entity(7, EntityType.ITEM)
        batcher.clear_batches()

        scheduler.advance(1.0)
        await batcher.drain()

        invalidator.assert_not_awaited()
        assert not batcher.has_pending
        assert batcher.pending_batch(7) is None

    @pytest.mark.asyncio
    async def test_immediate_invalidate_bypasses_batching(self, batcher, invalidator):
        keys = _keys(2, Resource.CATEGORIES)

        await batcher.immediate_invalidate(2, keys)

        invalidator.assert_awaited_once_with(2, frozenset(keys))
        assert batcher.state(2) is BatchState.IDLE
        assert batcher.stats["immediate"] == 1

    @pytest.mark.asyncio
    async def test_immediate_invalidate_propagates_errors(self, clock, scheduler):
        failing = AsyncMock(side_effect=RuntimeError("refetch failed"))
        batcher = BatchedInvalidationManager(failing, clock=clock, scheduler=scheduler)

        with pytest.raises(RuntimeError, match="refetch failed"):
            await batcher.immediate_invalidate(2, _keys(2, Resource.ITEMS))

    @pytest.mark.asyncio
    async def test_flush_error_is_logged_and_counted(self, clock, scheduler):
        failing = AsyncMock(side_effect=RuntimeError("server down"))
        batcher = BatchedInvalidationManager(failing, clock=clock, scheduler=scheduler)

        batcher.batch_invalidate_entity(7, EntityType.TRAVELER)
        scheduler.advance(0.2)
        await batcher.drain()

        assert batcher.stats["flush_errors"] == 1
        assert batcher.state(7) is BatchState.IDLE
