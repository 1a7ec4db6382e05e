"""Typed endpoint wrappers for the packing-list REST API, grouped by domain."""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING, Any, Generic, Literal, TypeVar

from pydantic import BaseModel, TypeAdapter

from packsync.adapters.api.models import (
    AssignItemsToBagRequest,
    AssignItemsToTravelerRequest,
    Bag,
    BulkCount,
    BulkUpdateItemsRequest,
    Category,
    Collaborator,
    CompletePackingList,
    CreateInvitationRequest,
    Invitation,
    Item,
    MoveItemsRequest,
    PackingList,
    PackingListInfo,
    Traveler,
    User,
)
from packsync.domain.models import EntityType

if TYPE_CHECKING:
    from packsync.adapters.api.client import PackingListApiClient

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

UnassignedType = Literal["category", "bag", "traveler"]


def _validate_list(model: type[ModelT], data: Any) -> list[ModelT]:
    return TypeAdapter(list[model]).validate_python(data or [])


def _list_of(model: type[ModelT]) -> partial[list[ModelT]]:
    return partial(_validate_list, model)


def _validate_bulk(data: Any) -> BulkCount:
    return BulkCount.model_validate(data or {})




class AuthApi:
    """Authentication endpoints (cookie session)."""

    def __init__(self, client: PackingListApiClient) -> None:
        self._client = client

    async def login(self, username: str, password: str) -> User:
        user = await self._client.post(
            "/api/auth/login",
            {"username": username, "password": password},
            parse=User.model_validate,
        )
        logger.info("auth_login_succeeded", extra={"username": username})
        return user

    async def logout(self) -> None:
        await self._client.post("/api/auth/logout")

    async def current_user(self) -> User:
        return await self._client.get("/api/auth/me", parse=User.model_validate)

    async def register(self, username: str, password: str) -> User:
        return await self._client.post(
            "/api/auth/register",
            {"username": username, "password": password},
            parse=User.model_validate,
        )


class PackingListsApi:
    def __init__(self, client: PackingListApiClient) -> None:
        self._client = client

    async def get_all(self) -> list[PackingList]:
        return await self._client.get("/api/packing-lists", parse=_list_of(PackingList))

    async def get_by_id(self, list_id: int) -> PackingListInfo:
        """Fetch the list summary (owner flag, collaborator count, progress)."""
        return await self._client.get(
            f"/api/packing-lists/{list_id}", parse=PackingListInfo.model_validate
        )

    async def get_complete(self, list_id: int) -> CompletePackingList:
        """Fetch the aggregate view the main list screen renders from."""
        return await self._client.get(
            f"/api/packing-lists/{list_id}/complete", parse=CompletePackingList.model_validate
        )

    async def create(self, payload: dict[str, Any]) -> PackingList:
        return await self._client.post(
            "/api/packing-lists", payload, parse=PackingList.model_validate
        )

    async def update(self, list_id: int, payload: dict[str, Any]) -> PackingList:
        return await self._client.patch(
            f"/api/packing-lists/{list_id}", payload, parse=PackingList.model_validate
        )

    async def delete(self, list_id: int) -> None:
        await self._client.delete(f"/api/packing-lists/{list_id}")

    async def get_shared_lists(self) -> list[PackingList]:
        return await self._client.get("/api/shared-packing-lists", parse=_list_of(PackingList))

    def export_url(self, list_id: int) -> str:
        """URL of the CSV export; the host downloads it itself."""
        return self._client.url_for(f"/api/packing-lists/{list_id}/export")


class EntityApi(Generic[ModelT]):
    """CRUD endpoints shared by every entity that lives inside a packing list."""

    def __init__(
        self, client: PackingListApiClient, entity: EntityType, model: type[ModelT]
    ) -> None:
        self._client = client
        self.entity = entity
        self.model = model
        self._collection = f"/api/{entity.collection_path}"

    async def get_all_for_packing_list(self, list_id: int) -> list[ModelT]:
        return await self._client.get(
            f"/api/packing-lists/{list_id}/{self.entity.collection_path}",
            parse=_list_of(self.model),
        )

    async def get_by_id(self, entity_id: int) -> ModelT:
        return await self._client.get(
            f"{self._collection}/{entity_id}", parse=self.model.model_validate
        )

    async def create(self, payload: dict[str, Any]) -> ModelT:
        created = await self._client.post(
            self._collection, payload, parse=self.model.model_validate
        )
        logger.info(
            "entity_created",
            extra={"entity": self.entity.value, "packing_list_id": payload.get("packingListId")},
        )
        return created

    async def update(self, entity_id: int, payload: dict[str, Any]) -> ModelT:
        return await self._client.patch(
            f"{self._collection}/{entity_id}", payload, parse=self.model.model_validate
        )

    async def delete(self, entity_id: int) -> None:
        await self._client.delete(f"{self._collection}/{entity_id}")


class ContainerApi(EntityApi[ModelT]):
    """Categories, bags and travelers: entities that hold items."""

    async def bulk_update_items(self, entity_id: int, updates: dict[str, Any]) -> BulkCount:
        """Apply ``updates`` to every item held by the container."""
        return await self._client.patch(
            f"{self._collection}/{entity_id}/bulk-update-items", updates, parse=_validate_bulk
        )


class ItemsApi(EntityApi[Item]):
    def __init__(self, client: PackingListApiClient) -> None:
        super().__init__(client, EntityType.ITEM, Item)

    async def get_all_for_category(self, category_id: int) -> list[Item]:
        return await self._client.get(
            f"/api/categories/{category_id}/items", parse=_list_of(Item)
        )

    async def get_all_items(self, list_id: int) -> list[Item]:
        """Every item of the list, including items with no category."""
        return await self._client.get(
            f"/api/packing-lists/{list_id}/all-items", parse=_list_of(Item)
        )

    async def get_unassigned(self, list_id: int, unassigned_type: UnassignedType) -> list[Item]:
        """Items whose ``unassigned_type`` foreign key is null."""
        return await self._client.get(
            f"/api/packing-lists/{list_id}/unassigned/{unassigned_type}", parse=_list_of(Item)
        )

    async def bulk_update(self, item_ids: list[int], updates: dict[str, Any]) -> BulkCount:
        request = BulkUpdateItemsRequest(item_ids=item_ids, updates=updates)
        return await self._client.post(
            "/api/items/multi-edit", request.model_dump(by_alias=True), parse=_validate_bulk
        )

    async def move_items(self, item_ids: list[int], target_category_id: int) -> BulkCount:
        request = MoveItemsRequest(item_ids=item_ids, target_category_id=target_category_id)
        return await self._client.post(
            "/api/items/move-category", request.model_dump(by_alias=True), parse=_validate_bulk
        )

    async def assign_to_bag(self, item_ids: list[int], target_bag_id: int | None) -> BulkCount:
        request = AssignItemsToBagRequest(item_ids=item_ids, target_bag_id=target_bag_id)
        return await self._client.post(
            "/api/items/assign-bag", request.model_dump(by_alias=True), parse=_validate_bulk
        )

    async def assign_to_traveler(
        self, item_ids: list[int], target_traveler_id: int | None
    ) -> BulkCount:
        request = AssignItemsToTravelerRequest(
            item_ids=item_ids, target_traveler_id=target_traveler_id
        )
        return await self._client.post(
            "/api/items/assign-traveler", request.model_dump(by_alias=True), parse=_validate_bulk
        )


class CollaborationApi:
    def __init__(self, client: PackingListApiClient) -> None:
        self._client = client

    async def get_collaborators(self, list_id: int) -> list[Collaborator]:
        return await self._client.get(
            f"/api/packing-lists/{list_id}/collaborators", parse=_list_of(Collaborator)
        )

    async def add_collaborator(
        self, list_id: int, user_id: int, permission_level: str
    ) -> Collaborator:
        return await self._client.post(
            "/api/collaborators",
            {"packingListId": list_id, "userId": user_id, "permissionLevel": permission_level},
            parse=Collaborator.model_validate,
        )

    async def remove_collaborator(self, list_id: int, user_id: int) -> None:
        await self._client.delete(f"/api/packing-lists/{list_id}/collaborators/{user_id}")

    async def create_invitation(self, request: CreateInvitationRequest) -> Invitation:
        invitation = await self._client.post(
            f"/api/packing-lists/{request.packing_list_id}/invitations",
            {"email": request.email, "role": request.permission_level},
            parse=Invitation.model_validate,
        )
        logger.info(
            "invitation_created",
            extra={"packing_list_id": request.packing_list_id, "role": request.permission_level},
        )
        return invitation

    async def get_invitations(self, list_id: int) -> list[Invitation]:
        return await self._client.get(
            f"/api/packing-lists/{list_id}/invitations", parse=_list_of(Invitation)
        )

    async def get_invitation_by_token(self, token: str) -> Invitation:
        return await self._client.get(
            f"/api/invitations/{token}", parse=Invitation.model_validate
        )

    async def accept_invitation(self, token: str) -> dict[str, Any]:
        return await self._client.post(f"/api/invitations/{token}/accept")

    async def get_pending_invitations(self) -> list[Invitation]:
        return await self._client.get("/api/invitations", parse=_list_of(Invitation))


class PackSyncApi:
    """All endpoint domains over one shared client."""

    def __init__(self, client: PackingListApiClient) -> None:
        self.client = client
        self.auth = AuthApi(client)
        self.packing_lists = PackingListsApi(client)
        self.categories: ContainerApi[Category] = ContainerApi(
            client, EntityType.CATEGORY, Category
        )
        self.bags: ContainerApi[Bag] = ContainerApi(client, EntityType.BAG, Bag)
        self.travelers: ContainerApi[Traveler] = ContainerApi(
            client, EntityType.TRAVELER, Traveler
        )
        self.items = ItemsApi(client)
        self.collaboration = CollaborationApi(client)

    def entity(self, entity: EntityType) -> EntityApi[Any]:
        """CRUD endpoints for ``entity``."""
        return {
            EntityType.ITEM: self.items,
            EntityType.CATEGORY: self.categories,
            EntityType.BAG: self.bags,
            EntityType.TRAVELER: self.travelers,
        }[entity]
