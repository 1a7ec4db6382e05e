"""Optimistic create/update/delete of packing-list entities.

Each operation:

1. cancels in-flight fetches of the entity's list-scoped collection, takes
   a snapshot of it in the query cache and applies the optimistic edit,
2. records the operation in the offline store,
3. sends it (unless the device is offline),
4. on success discards the record and batches the cache invalidation,
   on failure restores the snapshot, calls ``on_error`` and shows a toast,
   while offline keeps the record and the optimistic edit for later replay.

The pending counter of ``SyncStatus`` is held for the whole operation.
"""

from __future__ import annotations

import inspect
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from packsync.adapters.api.errors import ApiClientError, NetworkError
from packsync.core.logging_utils import generate_correlation_id
from packsync.core.time_utils import epoch_millis, utc_now
from packsync.domain.events import Toast
from packsync.domain.models import EntityType, OperationKind, PendingOperation
from packsync.infrastructure.cache.query_keys import COLLECTION_RESOURCE, QueryKey

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from packsync.adapters.api.endpoints import PackSyncApi
    from packsync.infrastructure.cache.invalidation_batcher import BatchedInvalidationManager
    from packsync.infrastructure.cache.query_cache import QueryCache
    from packsync.infrastructure.messaging.event_bus import EventBus
    from packsync.infrastructure.persistence.offline_store import OfflineOperationStore
    from packsync.services.network_status import NetworkStatus
    from packsync.services.sync_status import SyncStatus

logger = logging.getLogger(__name__)

OFFLINE_TOAST_TITLE = "Offline Changes"
OFFLINE_TOAST_DESCRIPTION = "Changes will be synchronized when you're back online."

SuccessCallback = Callable[[Any, Any], object]
ErrorCallback = Callable[[ApiClientError, Any], object]
OptimisticUpdate = Callable[[Any], object]

_temp_ids = itertools.count(1)


def new_temp_id() -> str:
    """Placeholder id for a created row, unique within the process."""
    return f"temp-{epoch_millis()}-{next(_temp_ids)}"


class MutationStatus(str, Enum):
    COMMITTED = "committed"
    QUEUED = "queued"
    FAILED = "failed"


@dataclass(frozen=True)
class MutationResult:
    """Outcome of one mutation.

    ``queued`` means the change is kept locally and will be replayed when the
    connection returns.
    """

    status: MutationStatus
    data: Any = None
    error: ApiClientError | None = None

    @property
    def ok(self) -> bool:
        return self.status is not MutationStatus.FAILED


@dataclass(frozen=True)
class Snapshot:
    """The cached collection existed before the mutation."""

    key: QueryKey
    data: Any


@dataclass(frozen=True)
class NoSnapshot:
    """Nothing was cached under ``key`` before the mutation."""

    key: QueryKey


CacheSnapshot = Snapshot | NoSnapshot


def take_snapshot(cache: QueryCache, key: QueryKey) -> CacheSnapshot:
    if cache.has(key):
        return Snapshot(key=key, data=cache.get_query_data(key))
    return NoSnapshot(key=key)


def restore_snapshot(cache: QueryCache, snapshot: CacheSnapshot) -> None:
    """Return the cache entry to its state before the mutation."""
    if isinstance(snapshot, Snapshot):
        cache.set_query_data(snapshot.key, snapshot.data)
    else:
        cache.remove_query(snapshot.key)


@dataclass(frozen=True)
class MutationContext:
    """Shared collaborators every mutation wrapper needs."""

    api: PackSyncApi
    cache: QueryCache
    batcher: BatchedInvalidationManager
    sync_status: SyncStatus
    network: NetworkStatus
    offline_store: OfflineOperationStore
    event_bus: EventBus


async def _maybe_await(result: object) -> None:
    if inspect.isawaitable(result):
        await result


class CollaborativeMutation:
    """Create, update and delete one entity type of one packing list."""

    def __init__(
        self,
        entity: EntityType,
        packing_list_id: int,
        context: MutationContext,
        *,
        on_success: SuccessCallback | None = None,
        on_error: ErrorCallback | None = None,
        optimistic_update: OptimisticUpdate | None = None,
        rollback_on_error: bool = True,
    ) -> None:
        """Initialize the wrapper.

        Args:
            entity: Entity type to mutate
            packing_list_id: Packing list the entities belong to
            context: Shared collaborators
            on_success: Called with ``(data, variables)`` after a committed mutation
            on_error: Called with ``(error, variables)`` after the rollback
            optimistic_update: Replaces the default optimistic cache edit
            rollback_on_error: Restore the snapshot when the server rejects a mutation
        """
        self.entity = entity
        self.packing_list_id = packing_list_id
        self._ctx = context
        self._on_success = on_success
        self._on_error = on_error
        self._optimistic_update = optimistic_update
        self._rollback_on_error = rollback_on_error
        self._in_flight = 0

    @property
    def collection_key(self) -> QueryKey:
        return QueryKey(self.packing_list_id, COLLECTION_RESOURCE[self.entity])

    @property
    def is_loading(self) -> bool:
        return self._in_flight > 0

    async def create(self, payload: dict[str, Any]) -> MutationResult:
        body = {**payload, "packingListId": self.packing_list_id}
        temp_record = {
            **body,
            "id": new_temp_id(),
            "createdAt": utc_now().isoformat(),
        }

        def _apply(rows: list[Any]) -> list[Any]:
            return [*rows, temp_record]

        async def _send() -> Any:
            return await self._ctx.api.entity(self.entity).create(body)

        result = await self._execute(
            OperationKind.CREATE,
            variables=payload,
            entity_id=None,
            payload=body,
            apply=_apply,
            send=_send,
            optimistic_data=temp_record,
        )
        if result.status is MutationStatus.COMMITTED:
            self._replace_temp_record(temp_record["id"], result.data)
        return result

    async def update(self, entity_id: int, payload: dict[str, Any]) -> MutationResult:
        def _apply(rows: list[Any]) -> list[Any]:
            return [
                {**row, **payload} if isinstance(row, dict) and row.get("id") == entity_id else row
                for row in rows
            ]

        async def _send() -> Any:
            return await self._ctx.api.entity(self.entity).update(entity_id, payload)

        return await self._execute(
            OperationKind.UPDATE,
            variables=payload,
            entity_id=entity_id,
            payload=payload,
            apply=_apply,
            send=_send,
            optimistic_data={"id": entity_id, **payload},
        )

    async def remove(self, entity_id: int) -> MutationResult:
        def _apply(rows: list[Any]) -> list[Any]:
            return [
                row for row in rows if not (isinstance(row, dict) and row.get("id") == entity_id)
            ]

        async def _send() -> Any:
            return await self._ctx.api.entity(self.entity).delete(entity_id)

        return await self._execute(
            OperationKind.DELETE,
            variables=entity_id,
            entity_id=entity_id,
            payload={},
            apply=_apply,
            send=_send,
            optimistic_data=None,
        )

    def begin(self, apply: Callable[[list[Any]], list[Any]], variables: Any) -> CacheSnapshot:
        """Cancel in-flight fetches, snapshot the collection, then apply the optimistic edit."""
        self._ctx.cache.cancel_queries(self.collection_key)
        snapshot = take_snapshot(self._ctx.cache, self.collection_key)
        if self._optimistic_update is not None:
            self._optimistic_update(variables)
        else:
            self._ctx.cache.update_query_data(
                self.collection_key, lambda rows: apply(list(rows or []))
            )
        return snapshot

    async def _execute(
        self,
        kind: OperationKind,
        *,
        variables: Any,
        entity_id: int | None,
        payload: dict[str, Any],
        apply: Callable[[list[Any]], list[Any]],
        send: Callable[[], Awaitable[Any]],
        optimistic_data: Any,
    ) -> MutationResult:
        ctx = self._ctx
        log_extra = {
            "correlation_id": generate_correlation_id(),
            "operation": kind.value,
            "entity": self.entity.value,
            "packing_list_id": self.packing_list_id,
            "entity_id": entity_id,
        }

        self._in_flight += 1
        try:
            async with ctx.sync_status.track():
                snapshot = self.begin(apply, variables)
                try:
                    record_id = await ctx.offline_store.record(
                        PendingOperation(
                            operation=kind,
                            entity=self.entity,
                            entity_id=entity_id,
                            payload=payload,
                            packing_list_id=self.packing_list_id,
                        ),
                        claim=True,
                    )
                except Exception:
                    restore_snapshot(ctx.cache, snapshot)
                    raise

                if not ctx.network.is_online:
                    return await self._queued(record_id, optimistic_data, log_extra)

                try:
                    data = await send()
                except NetworkError:
                    # No response at all: the connection is gone.
                    await ctx.network.handle_offline()
                    return await self._queued(record_id, optimistic_data, log_extra)
                except ApiClientError as exc:
                    if not ctx.network.is_online:
                        return await self._queued(record_id, optimistic_data, log_extra)
                    return await self._failed(exc, kind, snapshot, record_id, variables, log_extra)

                await ctx.offline_store.discard(record_id)
                ctx.batcher.batch_invalidate_entity(self.packing_list_id, self.entity)
                logger.info("mutation_committed", extra=log_extra)
                if self._on_success is not None:
                    await _maybe_await(self._on_success(data, variables))
                return MutationResult(MutationStatus.COMMITTED, data=data)
        finally:
            self._in_flight -= 1

    async def _queued(
        self, record_id: int, optimistic_data: Any, log_extra: dict[str, Any]
    ) -> MutationResult:
        self._ctx.offline_store.release(record_id)
        logger.info("mutation_queued_offline", extra=log_extra)
        await self._ctx.event_bus.publish(
            Toast(title=OFFLINE_TOAST_TITLE, description=OFFLINE_TOAST_DESCRIPTION)
        )
        return MutationResult(MutationStatus.QUEUED, data=optimistic_data)

    async def _failed(
        self,
        error: ApiClientError,
        kind: OperationKind,
        snapshot: CacheSnapshot,
        record_id: int,
        variables: Any,
        log_extra: dict[str, Any],
    ) -> MutationResult:
        ctx = self._ctx
        await ctx.offline_store.discard(record_id)
        if self._rollback_on_error:
            restore_snapshot(ctx.cache, snapshot)

        logger.warning(
            "mutation_failed",
            extra={**log_extra, "error": error.message, "status": error.status, "kind": error.kind},
        )
        if self._on_error is not None:
            await _maybe_await(self._on_error(error, variables))
        await ctx.event_bus.publish(
            Toast(
                title="Error",
                description=f"Failed to {kind.value} {self.entity.value}: {error.message}",
                variant="destructive",
            )
        )
        return MutationResult(MutationStatus.FAILED, error=error)

    def _replace_temp_record(self, temp_id: str, created: Any) -> None:
        if created is None or not self._ctx.cache.has(self.collection_key):
            return
        server_row = (
            created.model_dump(by_alias=True, mode="json")
            if hasattr(created, "model_dump")
            else created
        )
        self._ctx.cache.update_query_data(
            self.collection_key,
            lambda rows: [
                server_row if isinstance(row, dict) and row.get("id") == temp_id else row
                for row in rows or []
            ],
        )
