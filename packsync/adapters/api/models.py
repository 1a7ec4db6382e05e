"""Pydantic models for the packing-list REST API."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - Pydantic needs this at runtime
from typing import Any, Literal

from pydantic import BaseModel, Field

PermissionLevel = Literal["viewer", "editor", "admin"]


class User(BaseModel):
    """Authenticated user."""

    id: int
    username: str
    name: str | None = None
    email: str | None = None
    role: str | None = None

    model_config = {"populate_by_name": True, "extra": "ignore"}


class PackingList(BaseModel):
    """Packing list record."""

    id: int
    name: str
    theme: str | None = None
    date_range: str | None = Field(default=None, alias="dateRange")
    user_id: int | None = Field(default=None, alias="userId")
    created_at: datetime | None = Field(default=None, alias="createdAt")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class PackingListInfo(BaseModel):
    """Packing list summary shown in headers and the recent-lists menu."""

    id: int
    name: str
    theme: str | None = None
    date_range: str | None = Field(default=None, alias="dateRange")
    user_id: int | None = Field(default=None, alias="userId")
    is_owner: bool = Field(default=False, alias="isOwner")
    collaborator_count: int = Field(default=0, alias="collaboratorCount")
    item_count: int = Field(default=0, alias="itemCount")
    progress: float = 0

    model_config = {"populate_by_name": True, "extra": "ignore"}


class Category(BaseModel):
    id: int
    name: str
    position: int = 0
    packing_list_id: int = Field(alias="packingListId")
    created_at: datetime | None = Field(default=None, alias="createdAt")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class Bag(BaseModel):
    id: int
    name: str
    packing_list_id: int = Field(alias="packingListId")
    created_at: datetime | None = Field(default=None, alias="createdAt")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class Traveler(BaseModel):
    id: int
    name: str
    packing_list_id: int = Field(alias="packingListId")
    created_at: datetime | None = Field(default=None, alias="createdAt")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class Item(BaseModel):
    """Packing list item. A null foreign key means the item is unassigned."""

    id: int
    name: str
    quantity: int = 1
    packed: bool = False
    is_essential: bool = Field(default=False, alias="isEssential")
    due_date: datetime | None = Field(default=None, alias="dueDate")
    category_id: int | None = Field(default=None, alias="categoryId")
    bag_id: int | None = Field(default=None, alias="bagId")
    traveler_id: int | None = Field(default=None, alias="travelerId")
    packing_list_id: int | None = Field(default=None, alias="packingListId")
    created_at: datetime | None = Field(default=None, alias="createdAt")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class CompletePackingList(PackingList):
    """Aggregate view combining a list with all of its children."""

    categories: list[Category] = Field(default_factory=list)
    bags: list[Bag] = Field(default_factory=list)
    travelers: list[Traveler] = Field(default_factory=list)
    items: list[Item] = Field(default_factory=list)


class Collaborator(BaseModel):
    id: int | None = None
    packing_list_id: int = Field(alias="packingListId")
    user_id: int = Field(alias="userId")
    permission_level: str = Field(default="editor", alias="permissionLevel")
    username: str | None = None
    created_at: datetime | None = Field(default=None, alias="createdAt")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class Invitation(BaseModel):
    id: int
    token: str
    packing_list_id: int = Field(alias="packingListId")
    packing_list: PackingListInfo | None = Field(default=None, alias="packingList")
    email: str
    permission_level: str = Field(default="editor", alias="permissionLevel")
    expires: datetime | None = None
    accepted: bool = False
    created_at: datetime | None = Field(default=None, alias="createdAt")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class BulkCount(BaseModel):
    """Result of a bulk item operation."""

    count: int = 0

    model_config = {"populate_by_name": True, "extra": "ignore"}


class BulkUpdateItemsRequest(BaseModel):
    """Request to apply the same field updates to several items."""

    item_ids: list[int] = Field(alias="itemIds")
    updates: dict[str, Any]

    model_config = {"populate_by_name": True}


class MoveItemsRequest(BaseModel):
    item_ids: list[int] = Field(alias="itemIds")
    target_category_id: int = Field(alias="targetCategoryId")

    model_config = {"populate_by_name": True}


class AssignItemsToBagRequest(BaseModel):
    item_ids: list[int] = Field(alias="itemIds")
    target_bag_id: int | None = Field(alias="targetBagId")

    model_config = {"populate_by_name": True}


class AssignItemsToTravelerRequest(BaseModel):
    item_ids: list[int] = Field(alias="itemIds")
    target_traveler_id: int | None = Field(alias="targetTravelerId")

    model_config = {"populate_by_name": True}


class CreateInvitationRequest(BaseModel):
    """Invitation of an email address to a packing list."""

    email: str
    packing_list_id: int = Field(alias="packingListId")
    permission_level: PermissionLevel = Field(default="editor", alias="permissionLevel")

    model_config = {"populate_by_name": True}
