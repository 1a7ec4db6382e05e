from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator


class InvalidationConfig(BaseModel):
    """Timing of the debounced cache invalidation batcher (milliseconds)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    debounce_ms: int = Field(default=150, validation_alias="PACKSYNC_INVALIDATION_DEBOUNCE_MS")
    min_age_ms: int = Field(default=100, validation_alias="PACKSYNC_INVALIDATION_MIN_AGE_MS")
    recheck_ms: int = Field(default=50, validation_alias="PACKSYNC_INVALIDATION_RECHECK_MS")

    @field_validator("debounce_ms", "min_age_ms", "recheck_ms", mode="before")
    @classmethod
    def _validate_window(cls, value: Any, info: ValidationInfo) -> int:
        default = cls.model_fields[info.field_name].default
        try:
            parsed = int(str(value if value not in (None, "") else default))
        except ValueError as exc:
            msg = f"{info.field_name.replace('_', ' ')} must be a valid integer"
            raise ValueError(msg) from exc
        if parsed <= 0 or parsed > 10_000:
            msg = f"{info.field_name.replace('_', ' ').capitalize()} must be between 1 and 10000"
            raise ValueError(msg)
        return parsed

    @model_validator(mode="after")
    def _validate_min_age(self) -> InvalidationConfig:
        if self.min_age_ms > self.debounce_ms:
            msg = "Invalidation min age cannot exceed the debounce window"
            raise ValueError(msg)
        return self

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000

    @property
    def min_age_seconds(self) -> float:
        return self.min_age_ms / 1000

    @property
    def recheck_seconds(self) -> float:
        return self.recheck_ms / 1000


class SyncConfig(BaseModel):
    """Offline replay and connectivity probe configuration."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    interval_sec: float = Field(default=30.0, validation_alias="PACKSYNC_SYNC_INTERVAL_SEC")
    probe_enabled: bool = Field(default=True, validation_alias="PACKSYNC_PROBE_ENABLED")
    probe_interval_sec: float = Field(default=15.0, validation_alias="PACKSYNC_PROBE_INTERVAL_SEC")
    probe_path: str = Field(default="/api/auth/me", validation_alias="PACKSYNC_PROBE_PATH")

    @field_validator("interval_sec", "probe_interval_sec", mode="before")
    @classmethod
    def _validate_interval(cls, value: Any, info: ValidationInfo) -> float:
        default = cls.model_fields[info.field_name].default
        try:
            parsed = float(str(value if value not in (None, "") else default))
        except ValueError as exc:
            msg = f"{info.field_name.replace('_', ' ')} must be a valid number"
            raise ValueError(msg) from exc
        if parsed < 1 or parsed > 3600:
            msg = f"{info.field_name.replace('_', ' ').capitalize()} must be between 1 and 3600"
            raise ValueError(msg)
        return parsed

    @field_validator("probe_path", mode="before")
    @classmethod
    def _validate_probe_path(cls, value: Any) -> str:
        path = str(value or "/api/auth/me").strip()
        if not path.startswith("/"):
            msg = "Probe path must start with '/'"
            raise ValueError(msg)
        return path
