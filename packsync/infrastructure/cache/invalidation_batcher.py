"""Debounced, per-list coalescing of cache invalidations.

Many mutations a few hundred milliseconds apart each request an invalidation
of their list. The manager merges those requests into one batch per list and
flushes it once the sliding debounce window has passed, so a burst of writes
triggers one refetch instead of one per write.

Per list the state moves Idle -> Accumulating -> Flushing -> Idle. A new
request while a flush is running starts a fresh Accumulating cycle.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum

from packsync.core.scheduling import AsyncioScheduler, Clock, Scheduler, TimerHandle, monotonic_clock
from packsync.domain.models import EntityType
from packsync.infrastructure.cache.query_keys import InvalidationPlan, QueryKey, plan_invalidation

logger = logging.getLogger(__name__)

Invalidator = Callable[[int, frozenset[QueryKey]], Awaitable[object]]

# Float tolerance when comparing batch ages against the minimum age.
_AGE_EPSILON = 1e-9


class BatchState(str, Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    FLUSHING = "flushing"


@dataclass
class InvalidationBatch:
    packing_list_id: int
    query_keys: set[QueryKey] = field(default_factory=set)
    last_updated_at: float = 0.0


class BatchedInvalidationManager:
    """Coalesces invalidation requests per packing list.

    Usage::

        manager = BatchedInvalidationManager(cache.invalidate_for_list)
        manager.add_to_invalidation_batch(7, plan_invalidation(7, EntityType.ITEM).keys)

        # On shutdown:
        manager.clear_batches()
        await manager.drain()
    """

    def __init__(
        self,
        invalidator: Invalidator,
        *,
        clock: Clock = monotonic_clock,
        scheduler: Scheduler | None = None,
        debounce_window: float = 0.15,
        min_batch_age: float = 0.10,
        recheck_interval: float = 0.05,
    ) -> None:
        """Initialize the manager.

        Args:
            invalidator: Coroutine refreshing the given keys of one list
            clock: Monotonic clock in seconds
            scheduler: Timer source; defaults to the running event loop
            debounce_window: Sliding window reset by every request
            min_batch_age: Batches younger than this wait for a re-check
            recheck_interval: Delay between re-checks while batches remain
        """
        self._invalidator = invalidator
        self._clock = clock
        self._scheduler = scheduler or AsyncioScheduler()
        self._debounce_window = debounce_window
        self._min_batch_age = min_batch_age
        self._recheck_interval = recheck_interval

        self._batches: dict[int, InvalidationBatch] = {}
        self._timer: TimerHandle | None = None
        self._flushing: defaultdict[int, int] = defaultdict(int)
        self._tasks: set[asyncio.Task[None]] = set()
        self.stats = {"requests": 0, "flushes": 0, "immediate": 0, "flush_errors": 0}

    def add_to_invalidation_batch(self, packing_list_id: int, query_keys: Iterable[QueryKey]) -> None:
        """Merge ``query_keys`` into the list's batch and restart the debounce window."""
        keys = frozenset(query_keys)
        foreign = [key for key in keys if key.list_id != packing_list_id]
        if foreign:
            msg = f"Keys {sorted(str(k) for k in foreign)} do not belong to list {packing_list_id}"
            raise ValueError(msg)

        batch = self._batches.get(packing_list_id)
        if batch is None:
            batch = InvalidationBatch(packing_list_id=packing_list_id)
            self._batches[packing_list_id] = batch

        batch.query_keys |= keys
        batch.last_updated_at = self._clock()
        self.stats["requests"] += 1
        self._arm_timer(self._debounce_window)

    def batch_invalidate_entity(self, packing_list_id: int, entity: EntityType) -> InvalidationPlan:
        """Plan the invalidation for an ``entity`` mutation and batch its keys."""
        plan = plan_invalidation(packing_list_id, entity)
        self.add_to_invalidation_batch(packing_list_id, plan.keys)
        return plan

    async def immediate_invalidate(self, packing_list_id: int, query_keys: Iterable[QueryKey]) -> None:
        """Invalidate without batching. Errors propagate to the caller."""
        self.stats["immediate"] += 1
        await self._invalidator(packing_list_id, frozenset(query_keys))

    def clear_batches(self) -> None:
        """Drop every pending batch and cancel the timer. Running flushes continue."""
        dropped = len(self._batches)
        self._batches.clear()
        self._cancel_timer()
        if dropped:
            logger.debug("invalidation_batches_cleared", extra={"count": dropped})

    async def drain(self) -> None:
        """Wait until every running flush has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def state(self, packing_list_id: int) -> BatchState:
        if packing_list_id in self._batches:
            return BatchState.ACCUMULATING
        if self._flushing.get(packing_list_id):
            return BatchState.FLUSHING
        return BatchState.IDLE

    def pending_batch(self, packing_list_id: int) -> InvalidationBatch | None:
        return self._batches.get(packing_list_id)

    @property
    def has_pending(self) -> bool:
        return bool(self._batches) or bool(self._tasks)

    def _arm_timer(self, delay: float) -> None:
        self._cancel_timer()
        self._timer = self._scheduler.call_later(delay, self._process_batches)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _process_batches(self) -> None:
        self._timer = None
        now = self._clock()

        for packing_list_id, batch in list(self._batches.items()):
            if now - batch.last_updated_at + _AGE_EPSILON >= self._min_batch_age:
                del self._batches[packing_list_id]
                self._start_flush(packing_list_id, frozenset(batch.query_keys))

        if self._batches:
            self._arm_timer(self._recheck_interval)

    def _start_flush(self, packing_list_id: int, keys: frozenset[QueryKey]) -> None:
        self._flushing[packing_list_id] += 1
        task = asyncio.get_running_loop().create_task(
            self._flush(packing_list_id, keys), name=f"invalidation-flush-{packing_list_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _flush(self, packing_list_id: int, keys: frozenset[QueryKey]) -> None:
        logger.info(
            "invalidation_batch_flushed",
            extra={
                "packing_list_id": packing_list_id,
                "query_keys": sorted(str(key) for key in keys),
            },
        )
        try:
            await self._invalidator(packing_list_id, keys)
            self.stats["flushes"] += 1
        except Exception as exc:
            self.stats["flush_errors"] += 1
            logger.exception(
                "invalidation_flush_failed",
                extra={"packing_list_id": packing_list_id, "error": str(exc)},
            )
        finally:
            self._flushing[packing_list_id] -= 1
            if self._flushing[packing_list_id] <= 0:
                del self._flushing[packing_list_id]
