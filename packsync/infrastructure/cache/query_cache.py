"""In-memory query cache keyed by ``QueryKey``.

Holds server JSON per query, lets mutations write optimistic data and roll it
back, and refetches invalidated queries through per-resource fetchers.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any

from packsync.core.scheduling import Clock, monotonic_clock
from packsync.infrastructure.cache.query_keys import QueryKey, Resource, coarse_resources

logger = logging.getLogger(__name__)

Fetcher = Callable[[int], Awaitable[Any]]


@dataclass
class CacheEntry:
    data: Any
    updated_at: float
    stale: bool = False
    error: str | None = None


class QueryCache:
    """Manages cached query results for packing lists.

    Features:
    - Optimistic writes and snapshot restore
    - Coarse invalidation by resource family
    - Refetch of invalidated queries that have a registered fetcher
    - Cancellation of in-flight fetches before an optimistic write
    - Hit/miss/invalidation statistics
    """

    def __init__(
        self,
        fetchers: dict[Resource, Fetcher] | None = None,
        *,
        clock: Clock = monotonic_clock,
    ) -> None:
        self._entries: dict[QueryKey, CacheEntry] = {}
        self._fetchers: dict[Resource, Fetcher] = dict(fetchers or {})
        self._clock = clock
        # Bumped by cancel_queries; a fetch that started under an older value is discarded
        self._generations: dict[QueryKey, int] = {}
        self._in_flight: dict[QueryKey, int] = {}
        self.stats = {
            "hits": 0,
            "misses": 0,
            "invalidations": 0,
            "refetches": 0,
            "refetch_errors": 0,
            "cancelled": 0,
        }

    def register_fetcher(self, resource: Resource, fetcher: Fetcher) -> None:
        self._fetchers[resource] = fetcher

    def has(self, key: QueryKey) -> bool:
        return key in self._entries

    def keys(self) -> list[QueryKey]:
        return sorted(self._entries)

    def get_query_data(self, key: QueryKey) -> Any | None:
        """Return a deep copy of the cached data, or None."""
        entry = self._entries.get(key)
        if entry is None:
            self.stats["misses"] += 1
            return None
        self.stats["hits"] += 1
        return copy.deepcopy(entry.data)

    def set_query_data(self, key: QueryKey, data: Any) -> None:
        self._entries[key] = CacheEntry(data=copy.deepcopy(data), updated_at=self._clock())

    def update_query_data(self, key: QueryKey, updater: Callable[[Any], Any]) -> Any:
        """Replace the data of ``key`` with ``updater(old)`` and return the new data."""
        new_data = updater(self.get_query_data(key))
        self.set_query_data(key, new_data)
        return new_data

    def remove_query(self, key: QueryKey) -> None:
        self._entries.pop(key, None)

    def is_stale(self, key: QueryKey) -> bool:
        entry = self._entries.get(key)
        return entry is None or entry.stale

    def clear(self) -> None:
        self._entries.clear()

    def is_fetching(self, key: QueryKey) -> bool:
        return self._in_flight.get(key, 0) > 0

    def cancel_queries(self, key: QueryKey) -> int:
        """Discard the results of fetches of ``key`` that are still in flight.

        The fetches themselves run to completion but no longer write to the
        cache, so an optimistic edit applied afterwards is not overwritten.

        Returns:
            Number of in-flight fetches that were cancelled
        """
        self._generations[key] = self._generations.get(key, 0) + 1
        cancelled = self._in_flight.get(key, 0)
        if cancelled:
            self.stats["cancelled"] += cancelled
            logger.debug(
                "query_fetch_cancelled",
                extra={"query_key": key.path, "in_flight": cancelled},
            )
        return cancelled

    async def fetch_query(self, key: QueryKey) -> Any:
        """Fetch ``key`` from the server and store the result.

        Raises whatever the fetcher raises; the cached data is left untouched.
        A result whose fetch was cancelled with ``cancel_queries`` is returned
        but not stored.
        """
        fetcher = self._fetchers.get(key.resource)
        if fetcher is None:
            msg = f"No fetcher registered for {key.resource.value}"
            raise LookupError(msg)

        generation = self._generations.get(key, 0)
        self._in_flight[key] = self._in_flight.get(key, 0) + 1
        try:
            data = await fetcher(key.list_id)
        finally:
            remaining = self._in_flight[key] - 1
            if remaining:
                self._in_flight[key] = remaining
            else:
                del self._in_flight[key]

        if self._generations.get(key, 0) == generation:
            self.set_query_data(key, data)
        return copy.deepcopy(data)

    async def ensure_query_data(self, key: QueryKey) -> Any:
        """Return fresh cached data, fetching it when missing or stale."""
        if not self.is_stale(key):
            return self.get_query_data(key)
        return await self.fetch_query(key)

    async def invalidate_for_list(self, list_id: int, keys: Iterable[QueryKey]) -> int:
        """Mark the coarse resource families of ``keys`` stale and refetch them.

        Returns:
            Number of cached queries that were invalidated
        """
        resources = coarse_resources(keys)
        matched = [
            key
            for key in self._entries
            if key.list_id == list_id and key.resource in resources
        ]
        for key in matched:
            self._entries[key].stale = True
        self.stats["invalidations"] += len(matched)

        logger.debug(
            "query_cache_invalidated",
            extra={
                "packing_list_id": list_id,
                "query_keys": sorted(resource.value for resource in resources),
                "matched": len(matched),
            },
        )

        refetchable = [key for key in matched if key.resource in self._fetchers]
        if refetchable:
            await asyncio.gather(*(self._refetch(key) for key in refetchable))
        return len(matched)

    async def _refetch(self, key: QueryKey) -> None:
        try:
            await self.fetch_query(key)
            self.stats["refetches"] += 1
        except Exception as exc:
            # Stale data stays visible; the next invalidation or ensure retries.
            self.stats["refetch_errors"] += 1
            entry = self._entries.get(key)
            if entry is not None:
                entry.error = str(exc)
            logger.warning(
                "query_refetch_failed",
                extra={"query_key": key.path, "error": str(exc)},
            )

    def get_stats(self) -> dict[str, Any]:
        total = self.stats["hits"] + self.stats["misses"]
        hit_rate = self.stats["hits"] / total if total else 0.0
        return {**self.stats, "entries": len(self._entries), "hit_rate": round(hit_rate, 3)}
