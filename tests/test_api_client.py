"""Tests for the packing-list REST client and its endpoint wrappers."""

import json

import httpx
import pytest

from packsync.adapters.api.client import PackingListApiClient
from packsync.adapters.api.endpoints import PackSyncApi
from packsync.adapters.api.errors import (
    HttpError,
    NetworkError,
    RequestTimeoutError,
    ResponseParseError,
)
from packsync.domain.models import EntityType


def _client(handler, **kwargs) -> PackingListApiClient:
    return PackingListApiClient(
        "http://api.test/",
        transport=httpx.MockTransport(handler),
        retry_initial_delay=0.001,
        retry_max_delay=0.002,
        **kwargs,
    )


class TestRequestHandling:
    @pytest.mark.asyncio
    async def test_get_retries_server_errors(self):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            if len(calls) == 1:
                return httpx.Response(503, text="Service Unavailable")
            return httpx.Response(200, json=[{"id": 1, "name": "Beach trip"}])

        async with _client(handler) as client:
            data = await client.get("/api/packing-lists")

        assert data == [{"id": 1, "name": "Beach trip"}]
        assert calls == ["/api/packing-lists", "/api/packing-lists"]

    @pytest.mark.asyncio
    async def test_get_gives_up_after_retries(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(500, text="boom")

        async with _client(handler, get_retries=2) as client:
            with pytest.raises(HttpError) as exc_info:
                await client.get("/api/packing-lists/1")

        assert len(calls) == 3
        assert exc_info.value.status == 500
        assert exc_info.value.message == "boom"

    @pytest.mark.asyncio
    async def test_mutations_are_never_retried(self):
        calls = []

        def handler(request):
            calls.append(request.method)
            return httpx.Response(503, text="")

        async with _client(handler) as client:
            with pytest.raises(HttpError) as exc_info:
                await client.post("/api/items", {"name": "Sunscreen"})

        assert calls == ["POST"]
        assert exc_info.value.message == "Service Unavailable"

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(400, json={"message": "Name is required"})

        async with _client(handler) as client:
            with pytest.raises(HttpError) as exc_info:
                await client.get("/api/items/1")

        assert len(calls) == 1
        assert exc_info.value.status == 400
        assert exc_info.value.message == "Name is required"
        assert exc_info.value.kind == "http"

    @pytest.mark.asyncio
    async def test_no_content_returns_empty_dict(self):
        async with _client(lambda request: httpx.Response(204)) as client:
            assert await client.delete("/api/bags/5") == {}

    @pytest.mark.asyncio
    async def test_invalid_json_raises_parse_error(self):
        def handler(request):
            return httpx.Response(200, text="<html>maintenance</html>")

        async with _client(handler) as client:
            with pytest.raises(ResponseParseError) as exc_info:
                await client.get("/api/items/1", retries=0)

        assert exc_info.value.is_retryable is False
        assert exc_info.value.status == 200

    @pytest.mark.asyncio
    async def test_timeout_raises_timeout_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with _client(handler, timeout=5) as client:
            with pytest.raises(RequestTimeoutError, match="5 seconds"):
                await client.get("/api/items/1", retries=0)

    @pytest.mark.asyncio
    async def test_transport_failure_raises_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(NetworkError) as exc_info:
                await client.patch("/api/items/1", {"packed": True})

        assert exc_info.value.status == 0
        assert exc_info.value.is_retryable

    @pytest.mark.asyncio
    async def test_request_before_open_raises(self):
        client = _client(lambda request: httpx.Response(200, json={}))

        with pytest.raises(NetworkError, match="not initialized"):
            await client.get("/api/auth/me")


class TestEndpoints:
    @pytest.mark.asyncio
    async def test_item_create_posts_camel_case_payload(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                201,
                json={"id": 12, "name": "Sunscreen", "categoryId": 3, "packingListId": 7},
            )

        async with _client(handler) as client:
            api = PackSyncApi(client)
            item = await api.entity(EntityType.ITEM).create(
                {"name": "Sunscreen", "categoryId": 3, "packingListId": 7}
            )

        assert seen == {
            "method": "POST",
            "path": "/api/items",
            "body": {"name": "Sunscreen", "categoryId": 3, "packingListId": 7},
        }
        assert item.id == 12
        assert item.category_id == 3

    @pytest.mark.asyncio
    async def test_category_update_uses_patch(self):
        def handler(request):
            assert request.method == "PATCH"
            assert request.url.path == "/api/categories/3"
            return httpx.Response(200, json={"id": 3, "name": "Toiletries", "packingListId": 7})

        async with _client(handler) as client:
            category = await PackSyncApi(client).categories.update(3, {"name": "Toiletries"})

        assert category.name == "Toiletries"

    @pytest.mark.asyncio
    async def test_unassigned_items_path(self):
        def handler(request):
            assert request.url.path == "/api/packing-lists/7/unassigned/bag"
            return httpx.Response(200, json=[{"id": 1, "name": "Hat", "bagId": None}])

        async with _client(handler) as client:
            items = await PackSyncApi(client).items.get_unassigned(7, "bag")

        assert [item.name for item in items] == ["Hat"]

    @pytest.mark.asyncio
    async def test_summary_model(self):
        def handler(request):
            return httpx.Response(
                200,
                json={"id": 7, "name": "Beach", "isOwner": True, "collaboratorCount": 2},
            )

        async with _client(handler) as client:
            summary = await PackSyncApi(client).packing_lists.get_by_id(7)

        assert summary.is_owner is True
        assert summary.collaborator_count == 2

    @pytest.mark.asyncio
    async def test_wrong_shaped_body_raises_parse_error(self):
        def handler(request):
            return httpx.Response(200, json={"ok": True})

        async with _client(handler) as client:
            with pytest.raises(ResponseParseError) as exc_info:
                await PackSyncApi(client).items.update(42, {"packed": True})

        assert exc_info.value.status == 200
        assert exc_info.value.details == {"method": "PATCH", "path": "/api/items/42"}

    @pytest.mark.asyncio
    async def test_wrong_shaped_list_raises_parse_error(self):
        def handler(request):
            return httpx.Response(200, json={"items": []})

        async with _client(handler) as client:
            with pytest.raises(ResponseParseError):
                await PackSyncApi(client).items.get_all_items(7)

    def test_entity_lookup(self):
        api = PackSyncApi(_client(lambda request: httpx.Response(200)))

        assert api.entity(EntityType.BAG) is api.bags
        assert api.entity(EntityType.TRAVELER) is api.travelers
        assert api.packing_lists.export_url(7) == "http://api.test/api/packing-lists/7/export"
