"""Closed query-key taxonomy and invalidation planning.

Every cached query belongs to one packing list and one ``Resource``. The
planner maps an entity mutation to the keys that may hold stale data; the
aggregate ``complete`` key is part of every plan because the main list
screen renders from it.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum

from packsync.domain.models import EntityType


class Resource(str, Enum):
    SUMMARY = "summary"
    COMPLETE = "complete"
    CATEGORIES = "categories"
    BAGS = "bags"
    TRAVELERS = "travelers"
    ITEMS = "items"
    ALL_ITEMS = "all-items"
    UNASSIGNED_CATEGORY = "unassigned/category"
    UNASSIGNED_BAG = "unassigned/bag"
    UNASSIGNED_TRAVELER = "unassigned/traveler"
    COLLABORATORS = "collaborators"
    INVITATIONS = "invitations"


@dataclass(frozen=True, order=True)
class QueryKey:
    """Identifies one cached query of one packing list."""

    list_id: int
    resource: Resource

    @property
    def path(self) -> str:
        """REST path the query is fetched from."""
        if self.resource is Resource.SUMMARY:
            return f"/api/packing-lists/{self.list_id}"
        return f"/api/packing-lists/{self.list_id}/{self.resource.value}"

    def __str__(self) -> str:
        return self.path


COLLECTION_RESOURCE: dict[EntityType, Resource] = {
    EntityType.ITEM: Resource.ITEMS,
    EntityType.CATEGORY: Resource.CATEGORIES,
    EntityType.BAG: Resource.BAGS,
    EntityType.TRAVELER: Resource.TRAVELERS,
}

UNASSIGNED_RESOURCE: dict[EntityType, Resource] = {
    EntityType.CATEGORY: Resource.UNASSIGNED_CATEGORY,
    EntityType.BAG: Resource.UNASSIGNED_BAG,
    EntityType.TRAVELER: Resource.UNASSIGNED_TRAVELER,
}

# Resources whose contents change whenever any item changes.
ITEM_FAMILY: frozenset[Resource] = frozenset(
    {
        Resource.ITEMS,
        Resource.ALL_ITEMS,
        Resource.UNASSIGNED_CATEGORY,
        Resource.UNASSIGNED_BAG,
        Resource.UNASSIGNED_TRAVELER,
        Resource.COMPLETE,
    }
)

BASE_RESOURCES: tuple[Resource, ...] = (Resource.SUMMARY, Resource.COMPLETE)

_ENTITY_RESOURCES: dict[EntityType, tuple[Resource, ...]] = {
    EntityType.ITEM: (
        Resource.CATEGORIES,
        Resource.ALL_ITEMS,
        Resource.ITEMS,
        Resource.BAGS,
        Resource.TRAVELERS,
        Resource.UNASSIGNED_CATEGORY,
        Resource.UNASSIGNED_BAG,
        Resource.UNASSIGNED_TRAVELER,
    ),
    **{
        entity: (COLLECTION_RESOURCE[entity], Resource.ALL_ITEMS, UNASSIGNED_RESOURCE[entity])
        for entity in (EntityType.CATEGORY, EntityType.BAG, EntityType.TRAVELER)
    },
}


@dataclass(frozen=True)
class InvalidationPlan:
    """Keys to refresh after a mutation. Always contains the ``complete`` key."""

    list_id: int
    keys: frozenset[QueryKey]

    def __post_init__(self) -> None:
        if QueryKey(self.list_id, Resource.COMPLETE) not in self.keys:
            msg = f"Invalidation plan for list {self.list_id} is missing the complete key"
            raise ValueError(msg)
        foreign = [key for key in self.keys if key.list_id != self.list_id]
        if foreign:
            msg = f"Invalidation plan for list {self.list_id} contains keys of other lists"
            raise ValueError(msg)

    def __iter__(self) -> Iterator[QueryKey]:
        return iter(sorted(self.keys))

    def __contains__(self, key: object) -> bool:
        return key in self.keys

    def __len__(self) -> int:
        return len(self.keys)

    @property
    def resources(self) -> frozenset[Resource]:
        return frozenset(key.resource for key in self.keys)


def plan_invalidation(list_id: int, entity: EntityType) -> InvalidationPlan:
    """Return every key of ``list_id`` that a mutation of ``entity`` can make stale."""
    resources = (*BASE_RESOURCES, *_ENTITY_RESOURCES[entity])
    return InvalidationPlan(
        list_id=list_id,
        keys=frozenset(QueryKey(list_id, resource) for resource in resources),
    )


def coarse_resources(keys: Iterable[QueryKey]) -> frozenset[Resource]:
    """Translate accumulated keys into the resource families to refresh.

    ``complete`` is always refreshed. Any item-family key widens to the whole
    item family plus the list summary.
    """
    resources = {key.resource for key in keys}
    if resources & ITEM_FAMILY:
        resources |= ITEM_FAMILY
        resources.add(Resource.SUMMARY)
    resources.add(Resource.COMPLETE)
    return frozenset(resources)
