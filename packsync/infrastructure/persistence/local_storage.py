"""Persistent key/value storage for small pieces of client state."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from packsync.infrastructure.persistence.models import LocalStorageEntry, naive_utcnow

if TYPE_CHECKING:
    from packsync.infrastructure.persistence.database import StorageDatabase


class LocalStorage:
    """JSON values keyed by string, surviving restarts."""

    def __init__(self, database: StorageDatabase) -> None:
        self._db = database

    async def get_item(self, key: str) -> Any | None:
        def _get() -> Any | None:
            entry = LocalStorageEntry.get_or_none(LocalStorageEntry.key == key)
            return None if entry is None else entry.value

        return await self._db.execute(_get, operation_name="local_storage_get", read_only=True)

    async def set_item(self, key: str, value: Any) -> None:
        def _set() -> None:
            (
                LocalStorageEntry.insert(key=key, value=value, updated_at=naive_utcnow())
                .on_conflict(
                    conflict_target=[LocalStorageEntry.key],
                    preserve=[LocalStorageEntry.value, LocalStorageEntry.updated_at],
                )
                .execute()
            )

        await self._db.execute(_set, operation_name="local_storage_set")

    async def remove_item(self, key: str) -> None:
        def _remove() -> None:
            LocalStorageEntry.delete().where(LocalStorageEntry.key == key).execute()

        await self._db.execute(_remove, operation_name="local_storage_remove")
