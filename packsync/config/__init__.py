from __future__ import annotations

from .api import ApiClientConfig
from .settings import AppConfig, RuntimeConfig, Settings, load_config
from .storage import StorageConfig
from .sync import InvalidationConfig, SyncConfig

__all__ = [
    "ApiClientConfig",
    "AppConfig",
    "InvalidationConfig",
    "RuntimeConfig",
    "Settings",
    "StorageConfig",
    "SyncConfig",
    "load_config",
]
