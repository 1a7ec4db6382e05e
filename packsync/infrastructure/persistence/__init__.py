"""SQLite persistence for offline operations and local key/value state."""

from packsync.infrastructure.persistence.database import StorageDatabase
from packsync.infrastructure.persistence.local_storage import LocalStorage
from packsync.infrastructure.persistence.offline_store import OfflineOperationStore

__all__ = ["LocalStorage", "OfflineOperationStore", "StorageDatabase"]
