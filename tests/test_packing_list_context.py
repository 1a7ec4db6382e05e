"""Tests for active-list tracking and the recent-lists cache."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from packsync.adapters.api.errors import HttpError
from packsync.adapters.api.models import PackingListInfo
from packsync.infrastructure.cache.query_cache import QueryCache
from packsync.infrastructure.cache.query_keys import QueryKey, Resource
from packsync.infrastructure.persistence.local_storage import LocalStorage
from packsync.services.packing_list_context import RECENT_LISTS_KEY, PackingListContext


def _summary(list_id: int) -> PackingListInfo:
    return PackingListInfo(id=list_id, name=f"List {list_id}", isOwner=True)


@pytest.fixture
def lists_api():
    api = MagicMock()
    api.packing_lists.get_by_id = AsyncMock(side_effect=_summary)
    return api


@pytest.fixture
def local_storage(database):
    return LocalStorage(database)


class TestRecentLists:
    @pytest.mark.asyncio
    async def test_recent_lists_are_unique_most_recent_first(
        self, lists_api, local_storage, event_bus
    ):
        context = PackingListContext(lists_api, local_storage, event_bus)

        for list_id in [1, 2, 3, 2, 4, 5, 6]:
            await context.set_active_list_id(list_id)

        assert [entry.id for entry in context.recent_lists] == [6, 5, 4, 2, 3]
        assert context.active_list_id == 6
        assert context.active_list.name == "List 6"

        saved = await local_storage.get_item(RECENT_LISTS_KEY)
        assert [entry["id"] for entry in saved] == [6, 5, 4, 2, 3]
        assert saved[0]["isOwner"] is True

    @pytest.mark.asyncio
    async def test_recent_lists_survive_restart(self, lists_api, local_storage, event_bus):
        first = PackingListContext(lists_api, local_storage, event_bus)
        await first.set_active_list_id(1)
        await first.set_active_list_id(2)

        second = PackingListContext(lists_api, local_storage, event_bus)
        restored = await second.load()

        assert [entry.id for entry in restored] == [2, 1]

    @pytest.mark.asyncio
    async def test_corrupt_saved_value_is_ignored(self, lists_api, local_storage, event_bus):
        await local_storage.set_item(RECENT_LISTS_KEY, [{"unexpected": True}])
        context = PackingListContext(lists_api, local_storage, event_bus)

        assert await context.load() == []

    @pytest.mark.asyncio
    async def test_custom_limit(self, lists_api, local_storage, event_bus):
        context = PackingListContext(lists_api, local_storage, event_bus, recent_limit=2)

        for list_id in [1, 2, 3]:
            await context.set_active_list_id(list_id)

        assert [entry.id for entry in context.recent_lists] == [3, 2]


class TestActiveList:
    @pytest.mark.asyncio
    async def test_navigate_calls_navigator_and_caches_summary(
        self, lists_api, local_storage, event_bus
    ):
        navigator = MagicMock()
        cache = QueryCache()
        context = PackingListContext(
            lists_api, local_storage, event_bus, navigator, query_cache=cache
        )

        summary = await context.navigate_to_list(7)

        navigator.assert_called_once_with("/list/7")
        assert summary.id == 7
        assert context.is_loading is False
        assert cache.get_query_data(QueryKey(7, Resource.SUMMARY))["name"] == "List 7"

    @pytest.mark.asyncio
    async def test_fetch_failure_shows_toast_and_keeps_recent(
        self, lists_api, local_storage, event_bus, toasts
    ):
        context = PackingListContext(lists_api, local_storage, event_bus)
        await context.set_active_list_id(1)
        lists_api.packing_lists.get_by_id.side_effect = HttpError("Not Found", status=404)

        result = await context.set_active_list_id(9)

        assert result is None
        assert context.active_list_id == 9
        assert context.active_list is None
        assert context.is_error is True
        assert [entry.id for entry in context.recent_lists] == [1]
        assert len(toasts) == 1
        assert toasts[0].title == "Error"
        assert toasts[0].description == "Failed to load packing list details"

    @pytest.mark.asyncio
    async def test_clearing_active_list(self, lists_api, local_storage, event_bus):
        context = PackingListContext(lists_api, local_storage, event_bus)
        await context.set_active_list_id(1)

        assert await context.set_active_list_id(None) is None
        assert context.active_list is None
        assert [entry.id for entry in context.recent_lists] == [1]
