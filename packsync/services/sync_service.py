"""Replay of offline operations once the connection is back."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from packsync.adapters.api.errors import ApiClientError, HttpError, NetworkError, ResponseParseError
from packsync.core.time_utils import utc_now
from packsync.domain.events import ConnectivityChanged, OperationsReplayed
from packsync.domain.models import EntityType, OperationKind, RecordedOperation

if TYPE_CHECKING:
    from packsync.adapters.api.endpoints import PackSyncApi
    from packsync.infrastructure.cache.invalidation_batcher import BatchedInvalidationManager
    from packsync.infrastructure.messaging.event_bus import EventBus
    from packsync.infrastructure.persistence.offline_store import OfflineOperationStore
    from packsync.services.network_status import NetworkStatus

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class SyncServiceStatus:
    last_sync_time: datetime | None
    sync_in_progress: bool


@dataclass
class SyncReport:
    """Counts of one replay pass."""

    replayed: int = 0
    discarded: int = 0
    remaining: int = 0
    lists: list[int] = field(default_factory=list)
    skipped: bool = False


def _is_terminal(error: ApiClientError) -> bool:
    """Rejected for good: replaying again would fail the same way."""
    if isinstance(error, ResponseParseError):
        return True
    return isinstance(error, HttpError) and 400 <= error.status < 500


class SyncService:
    """Replays recorded operations in order, one packing list at a time.

    A successful or permanently rejected (4xx) operation is discarded. A
    transport failure, timeout or 5xx keeps the operation and stops the replay
    of its list so later operations never overtake it.
    """

    def __init__(
        self,
        store: OfflineOperationStore,
        api: PackSyncApi,
        network: NetworkStatus,
        batcher: BatchedInvalidationManager,
        event_bus: EventBus,
    ) -> None:
        self._store = store
        self._api = api
        self._network = network
        self._batcher = batcher
        self._event_bus = event_bus

        self._sync_in_progress = False
        self._last_sync_time: datetime | None = None
        self._started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Replay whenever the connection comes back.

        The periodic replay is scheduled by ``SchedulerService``.
        """
        if self._started:
            logger.warning("sync_service_already_started")
            return
        self._event_bus.subscribe(ConnectivityChanged, self._on_connectivity_changed)
        self._started = True
        logger.info("sync_service_started")

    def stop(self) -> None:
        if not self._started:
            return
        self._event_bus.unsubscribe(ConnectivityChanged, self._on_connectivity_changed)
        self._started = False
        logger.info("sync_service_stopped")

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    def get_sync_status(self) -> SyncServiceStatus:
        return SyncServiceStatus(
            last_sync_time=self._last_sync_time,
            sync_in_progress=self._sync_in_progress,
        )

    async def force_sync(self) -> SyncReport:
        return await self.attempt_sync()

    async def attempt_sync(self) -> SyncReport:
        if self._sync_in_progress:
            logger.debug("sync_already_in_progress")
            return SyncReport(skipped=True)
        if not self._network.is_online:
            logger.debug("sync_skipped_offline")
            return SyncReport(skipped=True)

        self._sync_in_progress = True
        try:
            return await self._replay_all()
        finally:
            self._sync_in_progress = False

    async def _replay_all(self) -> SyncReport:
        report = SyncReport()
        unsynced = await self._store.get_unsynced()
        if not unsynced:
            logger.debug("sync_nothing_pending")
            self._last_sync_time = utc_now()
            return report

        logger.info("sync_started", extra={"pending_operations": len(unsynced)})

        by_list: dict[int, list[RecordedOperation]] = {}
        for operation in unsynced:
            by_list.setdefault(operation.packing_list_id, []).append(operation)

        for packing_list_id, operations in by_list.items():
            await self._replay_list(packing_list_id, operations, report)
            if not self._network.is_online:
                report.remaining += sum(
                    len(ops) for list_id, ops in by_list.items() if list_id not in report.lists
                )
                break

        self._last_sync_time = utc_now()
        logger.info(
            "sync_completed",
            extra={
                "replayed": report.replayed,
                "discarded": report.discarded,
                "remaining": report.remaining,
            },
        )
        return report

    async def _replay_list(
        self,
        packing_list_id: int,
        operations: list[RecordedOperation],
        report: SyncReport,
    ) -> None:
        report.lists.append(packing_list_id)
        touched: set[EntityType] = set()
        replayed = discarded = 0

        for index, operation in enumerate(operations):
            extra = {
                "record_id": operation.id,
                "operation": operation.operation.value,
                "entity": operation.entity.value,
                "packing_list_id": packing_list_id,
            }
            try:
                await self._send(operation)
            except ApiClientError as exc:
                if _is_terminal(exc):
                    logger.warning(
                        "sync_operation_rejected",
                        extra={**extra, "status": exc.status, "error": exc.message},
                    )
                    await self._store.discard(operation.id)
                    discarded += 1
                    touched.add(operation.entity)
                    continue

                logger.warning(
                    "sync_operation_deferred",
                    extra={**extra, "kind": exc.kind, "error": exc.message},
                )
                if isinstance(exc, NetworkError):
                    await self._network.handle_offline()
                report.remaining += len(operations) - index
                break

            await self._store.discard(operation.id)
            replayed += 1
            touched.add(operation.entity)

        report.replayed += replayed
        report.discarded += discarded

        for entity in sorted(touched, key=lambda e: e.value):
            self._batcher.batch_invalidate_entity(packing_list_id, entity)

        if replayed or discarded:
            await self._event_bus.publish(
                OperationsReplayed(
                    packing_list_id=packing_list_id,
                    replayed=replayed,
                    discarded=discarded,
                    remaining=len(operations) - replayed - discarded,
                )
            )

    async def _send(self, operation: RecordedOperation) -> Any:
        endpoint = self._api.entity(operation.entity)
        if operation.operation is OperationKind.CREATE:
            return await endpoint.create(dict(operation.payload))
        if operation.operation is OperationKind.UPDATE:
            return await endpoint.update(operation.entity_id, dict(operation.payload))
        return await endpoint.delete(operation.entity_id)

    async def _on_connectivity_changed(self, event: ConnectivityChanged) -> None:
        if event.online:
            logger.info("sync_triggered_by_reconnect")
            await self.attempt_sync()

    async def run_scheduled_sync(self) -> None:
        """Periodic replay job; failures are logged so the job keeps its schedule."""
        try:
            await self.attempt_sync()
        except Exception as exc:
            logger.exception("scheduled_sync_failed", extra={"error": str(exc)})
