"""Durable store of pending operations waiting for server confirmation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from packsync.domain.models import EntityType, OperationKind, PendingOperation, RecordedOperation
from packsync.infrastructure.persistence.models import PendingOperationRecord

if TYPE_CHECKING:
    from packsync.infrastructure.persistence.database import StorageDatabase

logger = logging.getLogger(__name__)


def _to_domain(record: PendingOperationRecord) -> RecordedOperation:
    return RecordedOperation(
        id=record.id,
        operation=OperationKind(record.operation),
        entity=EntityType(record.entity),
        entity_id=record.entity_id,
        payload=record.payload or {},
        packing_list_id=record.packing_list_id,
        created_at=record.created_at,
    )


class OfflineOperationStore:
    """Records operations before they are sent and discards them once settled."""

    def __init__(self, database: StorageDatabase) -> None:
        self._db = database
        # Records currently being sent by a live mutation; replay skips them.
        self._claimed: set[int] = set()

    async def record(self, operation: PendingOperation, *, claim: bool = False) -> int:
        """Persist ``operation`` as unsynced and return its record id.

        With ``claim`` the record is hidden from ``get_unsynced`` until it is
        released or discarded.
        """

        def _insert() -> int:
            record = PendingOperationRecord.create(
                operation=operation.operation.value,
                entity=operation.entity.value,
                entity_id=operation.entity_id,
                payload=dict(operation.payload),
                packing_list_id=operation.packing_list_id,
            )
            return int(record.id)

        record_id = await self._db.execute(_insert, operation_name="record_operation")
        if claim:
            self._claimed.add(record_id)
        logger.debug(
            "pending_operation_recorded",
            extra={
                "record_id": record_id,
                "operation": operation.operation.value,
                "entity": operation.entity.value,
                "packing_list_id": operation.packing_list_id,
            },
        )
        return record_id

    async def get_unsynced(self, packing_list_id: int | None = None) -> list[RecordedOperation]:
        """Unsynced operations in recording order, optionally for one list."""
        claimed = set(self._claimed)

        def _query() -> list[RecordedOperation]:
            query = PendingOperationRecord.select()
            if packing_list_id is not None:
                query = query.where(PendingOperationRecord.packing_list_id == packing_list_id)
            query = query.order_by(PendingOperationRecord.created_at, PendingOperationRecord.id)
            return [_to_domain(record) for record in query if record.id not in claimed]

        return await self._db.execute(_query, operation_name="get_unsynced", read_only=True)

    async def count_unsynced(self) -> int:
        def _count() -> int:
            return PendingOperationRecord.select().count()

        return await self._db.execute(_count, operation_name="count_unsynced", read_only=True)

    def release(self, record_id: int) -> None:
        """Make a claimed record visible to replay again."""
        self._claimed.discard(record_id)

    async def discard(self, record_id: int) -> bool:
        """Delete a settled operation. Returns False if it was already gone."""

        def _delete() -> int:
            return (
                PendingOperationRecord.delete()
                .where(PendingOperationRecord.id == record_id)
                .execute()
            )

        self._claimed.discard(record_id)
        deleted = await self._db.execute(_delete, operation_name="discard_operation")
        logger.debug("pending_operation_discarded", extra={"record_id": record_id})
        return bool(deleted)

