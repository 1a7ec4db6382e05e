from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StorageConfig(BaseModel):
    """Local SQLite storage for offline operations and persisted UI state."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    db_path: str = Field(default="~/.packsync/packsync.db", validation_alias="PACKSYNC_DB_PATH")
    recent_lists_limit: int = Field(default=5, validation_alias="PACKSYNC_RECENT_LISTS_LIMIT")

    @field_validator("db_path", mode="before")
    @classmethod
    def _validate_db_path(cls, value: Any) -> str:
        raw = str(value or "~/.packsync/packsync.db").strip()
        if "\x00" in raw:
            msg = "Database path contains invalid characters"
            raise ValueError(msg)
        if raw == ":memory:":
            return raw
        return os.path.expanduser(raw)

    @field_validator("recent_lists_limit", mode="before")
    @classmethod
    def _validate_recent_limit(cls, value: Any) -> int:
        try:
            parsed = int(str(value if value not in (None, "") else 5))
        except ValueError as exc:
            msg = "Recent lists limit must be a valid integer"
            raise ValueError(msg) from exc
        if parsed < 1 or parsed > 50:
            msg = "Recent lists limit must be between 1 and 50"
            raise ValueError(msg)
        return parsed
