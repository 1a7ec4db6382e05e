"""Active packing list tracking and the persisted recent-lists cache."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from pydantic import ValidationError

from packsync.adapters.api.errors import ApiClientError
from packsync.adapters.api.models import PackingListInfo
from packsync.domain.events import Toast
from packsync.infrastructure.cache.query_keys import QueryKey, Resource

if TYPE_CHECKING:
    from packsync.adapters.api.endpoints import PackSyncApi
    from packsync.infrastructure.cache.query_cache import QueryCache
    from packsync.infrastructure.messaging.event_bus import EventBus
    from packsync.infrastructure.persistence.local_storage import LocalStorage

logger = logging.getLogger(__name__)

RECENT_LISTS_KEY = "recentLists"
DEFAULT_RECENT_LIMIT = 5

Navigator = Callable[[str], object]


def list_path(list_id: int) -> str:
    return f"/list/{list_id}"


class PackingListContext:
    """Tracks which list is active and remembers the last lists visited.

    The recent lists are ordered most recent first, unique by id, and trimmed
    to ``recent_limit`` entries. They are persisted after every change.
    """

    def __init__(
        self,
        api: PackSyncApi,
        local_storage: LocalStorage,
        event_bus: EventBus,
        navigator: Navigator | None = None,
        *,
        query_cache: QueryCache | None = None,
        recent_limit: int = DEFAULT_RECENT_LIMIT,
    ) -> None:
        self._api = api
        self._storage = local_storage
        self._event_bus = event_bus
        self._navigator = navigator
        self._query_cache = query_cache
        self._recent_limit = recent_limit

        self.active_list_id: int | None = None
        self.active_list: PackingListInfo | None = None
        self.is_loading = False
        self.is_error = False
        self._recent_lists: list[PackingListInfo] = []

    @property
    def recent_lists(self) -> list[PackingListInfo]:
        return list(self._recent_lists)

    async def load(self) -> list[PackingListInfo]:
        """Restore the recent lists saved by a previous session."""
        saved = await self._storage.get_item(RECENT_LISTS_KEY)
        if not saved:
            return self.recent_lists
        try:
            restored = [PackingListInfo.model_validate(entry) for entry in saved]
        except (ValidationError, TypeError) as exc:
            logger.error("recent_lists_load_failed", extra={"error": str(exc)})
            return self.recent_lists

        self._recent_lists = restored[: self._recent_limit]
        logger.debug("recent_lists_loaded", extra={"count": len(self._recent_lists)})
        return self.recent_lists

    async def set_active_list_id(self, list_id: int | None) -> PackingListInfo | None:
        """Make ``list_id`` active and fetch its summary.

        Returns the summary, or None when cleared or when the fetch failed.
        """
        self.active_list_id = list_id
        if list_id is None:
            self.active_list = None
            self.is_error = False
            return None

        self.is_loading = True
        try:
            summary = await self._api.packing_lists.get_by_id(list_id)
        except ApiClientError as exc:
            if self.active_list_id != list_id:
                return None
            self.active_list = None
            self.is_error = True
            logger.error(
                "active_list_fetch_failed",
                extra={"packing_list_id": list_id, "error": exc.message, "status": exc.status},
            )
            await self._event_bus.publish(
                Toast(
                    title="Error",
                    description="Failed to load packing list details",
                    variant="destructive",
                )
            )
            return None
        finally:
            self.is_loading = False

        # A newer navigation may have replaced the active list meanwhile.
        if self.active_list_id != list_id:
            return summary

        self.active_list = summary
        self.is_error = False
        if self._query_cache is not None:
            self._query_cache.set_query_data(
                QueryKey(list_id, Resource.SUMMARY),
                summary.model_dump(by_alias=True, mode="json"),
            )
        await self.add_recent_list(summary)
        return summary

    async def add_recent_list(self, summary: PackingListInfo) -> None:
        remaining = [entry for entry in self._recent_lists if entry.id != summary.id]
        self._recent_lists = [summary, *remaining][: self._recent_limit]
        await self._storage.set_item(
            RECENT_LISTS_KEY,
            [entry.model_dump(by_alias=True, mode="json") for entry in self._recent_lists],
        )

    async def navigate_to_list(self, list_id: int) -> PackingListInfo | None:
        """Activate ``list_id`` and navigate the host to ``/list/{id}``."""
        self.active_list_id = list_id
        if self._navigator is not None:
            self._navigator(list_path(list_id))
        return await self.set_active_list_id(list_id)
