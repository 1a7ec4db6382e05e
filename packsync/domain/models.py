"""Client-side domain models for pending operations."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - Pydantic needs this at runtime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EntityType(str, Enum):
    """Entity kinds that can be mutated inside a packing list."""

    ITEM = "item"
    CATEGORY = "category"
    BAG = "bag"
    TRAVELER = "traveler"

    @property
    def collection_path(self) -> str:
        """REST collection segment (``items``, ``categories``...)."""
        if self is EntityType.CATEGORY:
            return "categories"
        return f"{self.value}s"


class OperationKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class PendingOperation(BaseModel):
    """A mutation waiting to be confirmed by the server.

    ``entity_id`` is absent for creates and required for updates and deletes.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    operation: OperationKind
    entity: EntityType
    entity_id: int | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    packing_list_id: int

    @model_validator(mode="after")
    def _validate_entity_id(self) -> PendingOperation:
        if self.operation is OperationKind.CREATE and self.entity_id is not None:
            msg = "create operations must not carry an entity id"
            raise ValueError(msg)
        if self.operation is not OperationKind.CREATE and self.entity_id is None:
            msg = f"{self.operation.value} operations require an entity id"
            raise ValueError(msg)
        return self


class RecordedOperation(PendingOperation):
    """A pending operation as stored in the offline operation store."""

    id: int
    created_at: datetime

    def to_pending(self) -> PendingOperation:
        return PendingOperation(
            operation=self.operation,
            entity=self.entity,
            entity_id=self.entity_id,
            payload=dict(self.payload),
            packing_list_id=self.packing_list_id,
        )
