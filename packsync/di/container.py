"""Dependency injection container for wiring packsync components.

This container is the single place where the API client, the local database,
the query cache and the services built on them are created and connected.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from packsync.adapters.api.client import PackingListApiClient
from packsync.adapters.api.endpoints import PackSyncApi
from packsync.config import AppConfig, load_config
from packsync.core.logging_utils import setup_json_logging
from packsync.infrastructure.cache.invalidation_batcher import BatchedInvalidationManager
from packsync.infrastructure.cache.query_cache import QueryCache
from packsync.infrastructure.cache.query_keys import Resource
from packsync.infrastructure.messaging.event_bus import EventBus
from packsync.infrastructure.persistence.database import StorageDatabase
from packsync.infrastructure.persistence.local_storage import LocalStorage
from packsync.infrastructure.persistence.offline_store import OfflineOperationStore
from packsync.services.collaborative_mutation import CollaborativeMutation, MutationContext
from packsync.services.network_status import (
    ConnectivityProbe,
    NetworkStatus,
    api_reachability_check,
)
from packsync.services.packing_list_context import Navigator, PackingListContext
from packsync.services.scheduler import SchedulerService
from packsync.services.sync_service import SyncService
from packsync.services.sync_status import SyncStatus

if TYPE_CHECKING:
    import httpx

    from packsync.domain.models import EntityType
    from packsync.infrastructure.cache.query_cache import Fetcher

logger = logging.getLogger(__name__)


def _dump(value: Any) -> Any:
    """JSON-shaped copy of an API model or list of models, as the cache stores it."""
    if isinstance(value, list):
        return [_dump(row) for row in value]
    if hasattr(value, "model_dump"):
        return value.model_dump(by_alias=True, mode="json")
    return value


def build_fetchers(api: PackSyncApi) -> dict[Resource, Fetcher]:
    """Map each cacheable resource to the endpoint that refreshes it."""

    def _fetcher(call: Any) -> Fetcher:
        async def _fetch(list_id: int) -> Any:
            return _dump(await call(list_id))

        return _fetch

    return {
        Resource.SUMMARY: _fetcher(api.packing_lists.get_by_id),
        Resource.COMPLETE: _fetcher(api.packing_lists.get_complete),
        Resource.CATEGORIES: _fetcher(api.categories.get_all_for_packing_list),
        Resource.BAGS: _fetcher(api.bags.get_all_for_packing_list),
        Resource.TRAVELERS: _fetcher(api.travelers.get_all_for_packing_list),
        Resource.ITEMS: _fetcher(api.items.get_all_for_packing_list),
        Resource.ALL_ITEMS: _fetcher(api.items.get_all_items),
        Resource.UNASSIGNED_CATEGORY: _fetcher(
            lambda list_id: api.items.get_unassigned(list_id, "category")
        ),
        Resource.UNASSIGNED_BAG: _fetcher(lambda list_id: api.items.get_unassigned(list_id, "bag")),
        Resource.UNASSIGNED_TRAVELER: _fetcher(
            lambda list_id: api.items.get_unassigned(list_id, "traveler")
        ),
        Resource.COLLABORATORS: _fetcher(api.collaboration.get_collaborators),
        Resource.INVITATIONS: _fetcher(api.collaboration.get_invitations),
    }


class Container:
    """Dependency injection container.

    Components are created lazily on first access and shared afterwards.

    Example:
        ```python
        container = Container(load_config())
        await container.start()

        items = container.mutation_for(EntityType.ITEM, 7)
        await items.update(42, {"packed": True})

        await container.stop()
        ```
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        navigator: Navigator | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        configure_logging: bool = False,
    ) -> None:
        """Initialize the container.

        Args:
            config: Application configuration; loaded from the environment when omitted
            navigator: Callback receiving ``/list/{id}`` paths on navigation
            transport: Optional httpx transport override (used by tests)
            configure_logging: Install the JSON log formatter on the root logger
        """
        self.config = config or load_config()
        self._navigator = navigator
        self._transport = transport

        if configure_logging:
            setup_json_logging(
                level=self.config.runtime.log_level,
                log_file=self.config.runtime.log_file,
            )

        # Lazy-initialized components
        self._database: StorageDatabase | None = None
        self._api_client: PackingListApiClient | None = None
        self._api: PackSyncApi | None = None
        self._event_bus: EventBus | None = None
        self._query_cache: QueryCache | None = None
        self._batcher: BatchedInvalidationManager | None = None
        self._sync_status: SyncStatus | None = None
        self._network: NetworkStatus | None = None
        self._probe: ConnectivityProbe | None = None
        self._offline_store: OfflineOperationStore | None = None
        self._local_storage: LocalStorage | None = None
        self._packing_list_context: PackingListContext | None = None
        self._sync_service: SyncService | None = None
        self._scheduler: SchedulerService | None = None
        self._started = False

    def database(self) -> StorageDatabase:
        if self._database is None:
            self._database = StorageDatabase(path=self.config.storage.db_path)
            self._database.migrate()
        return self._database

    def api_client(self) -> PackingListApiClient:
        if self._api_client is None:
            self._api_client = PackingListApiClient.from_config(
                self.config.api, transport=self._transport
            )
        return self._api_client

    def api(self) -> PackSyncApi:
        if self._api is None:
            self._api = PackSyncApi(self.api_client())
        return self._api

    def event_bus(self) -> EventBus:
        if self._event_bus is None:
            self._event_bus = EventBus()
        return self._event_bus

    def query_cache(self) -> QueryCache:
        if self._query_cache is None:
            self._query_cache = QueryCache(build_fetchers(self.api()))
        return self._query_cache

    def invalidation_batcher(self) -> BatchedInvalidationManager:
        if self._batcher is None:
            timing = self.config.invalidation
            self._batcher = BatchedInvalidationManager(
                self.query_cache().invalidate_for_list,
                debounce_window=timing.debounce_seconds,
                min_batch_age=timing.min_age_seconds,
                recheck_interval=timing.recheck_seconds,
            )
        return self._batcher

    def sync_status(self) -> SyncStatus:
        if self._sync_status is None:
            self._sync_status = SyncStatus()
        return self._sync_status

    def network_status(self) -> NetworkStatus:
        if self._network is None:
            self._network = NetworkStatus(self.event_bus())
        return self._network

    def connectivity_probe(self) -> ConnectivityProbe:
        if self._probe is None:
            self._probe = ConnectivityProbe(
                self.network_status(),
                api_reachability_check(self.api_client(), self.config.sync.probe_path),
            )
        return self._probe

    def offline_store(self) -> OfflineOperationStore:
        if self._offline_store is None:
            self._offline_store = OfflineOperationStore(self.database())
        return self._offline_store

    def local_storage(self) -> LocalStorage:
        if self._local_storage is None:
            self._local_storage = LocalStorage(self.database())
        return self._local_storage

    def packing_list_context(self) -> PackingListContext:
        if self._packing_list_context is None:
            self._packing_list_context = PackingListContext(
                self.api(),
                self.local_storage(),
                self.event_bus(),
                self._navigator,
                query_cache=self.query_cache(),
                recent_limit=self.config.storage.recent_lists_limit,
            )
        return self._packing_list_context

    def sync_service(self) -> SyncService:
        if self._sync_service is None:
            self._sync_service = SyncService(
                self.offline_store(),
                self.api(),
                self.network_status(),
                self.invalidation_batcher(),
                self.event_bus(),
            )
        return self._sync_service

    def scheduler(self) -> SchedulerService:
        if self._scheduler is None:
            self._scheduler = SchedulerService(
                self.config.sync, self.sync_service(), self.connectivity_probe()
            )
        return self._scheduler

    def mutation_context(self) -> MutationContext:
        return MutationContext(
            api=self.api(),
            cache=self.query_cache(),
            batcher=self.invalidation_batcher(),
            sync_status=self.sync_status(),
            network=self.network_status(),
            offline_store=self.offline_store(),
            event_bus=self.event_bus(),
        )

    def mutation_for(
        self, entity: EntityType, packing_list_id: int, **kwargs: Any
    ) -> CollaborativeMutation:
        """Mutation wrapper for ``entity`` inside ``packing_list_id``.

        Keyword arguments are passed to ``CollaborativeMutation``.
        """
        return CollaborativeMutation(entity, packing_list_id, self.mutation_context(), **kwargs)

    async def start(self, *, background: bool = True) -> None:
        """Open the API session and restore persisted state.

        With ``background`` the connectivity probe and periodic replay start too.
        """
        if self._started:
            return
        self.api_client().open()
        await self.packing_list_context().load()
        if background:
            self.sync_service().start()
            await self.scheduler().start()
        self._started = True
        logger.info(
            "container_started",
            extra={"base_url": self.config.api.base_url, "background": background},
        )

    async def stop(self) -> None:
        """Stop background work and release resources. Pending batches are dropped."""
        if self._scheduler is not None:
            await self._scheduler.stop()
        if self._sync_service is not None:
            self._sync_service.stop()
        if self._batcher is not None:
            self._batcher.clear_batches()
            await self._batcher.drain()
        if self._api_client is not None:
            await self._api_client.aclose()
        if self._database is not None:
            self._database.close()
        self._started = False
        logger.info("container_stopped")

    async def __aenter__(self) -> Container:
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.stop()
