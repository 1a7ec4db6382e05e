from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from .api import ApiClientConfig
from .storage import StorageConfig
from .sync import InvalidationConfig, SyncConfig

logger = logging.getLogger(__name__)


class RuntimeConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    log_level: str = Field(
        default="INFO", validation_alias=AliasChoices("PACKSYNC_LOG_LEVEL", "LOG_LEVEL")
    )
    log_file: str | None = Field(default=None, validation_alias="PACKSYNC_LOG_FILE")

    @field_validator("log_level", mode="before")
    @classmethod
    def _validate_log_level(cls, value: Any) -> str:
        log_level = str(value or "INFO").upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if log_level not in valid_levels:
            msg = f"Invalid log level: {value}. Must be one of {valid_levels}"
            raise ValueError(msg)
        return log_level

    @field_validator("log_file", mode="before")
    @classmethod
    def _validate_log_file(cls, value: Any) -> str | None:
        if value is None:
            return None
        trimmed = str(value).strip()
        return trimmed or None


@dataclass(frozen=True)
class AppConfig:
    api: ApiClientConfig
    invalidation: InvalidationConfig
    sync: SyncConfig
    storage: StorageConfig
    runtime: RuntimeConfig


class Settings(BaseSettings):
    """Settings loaded from environment variables and an optional ``.env`` file.

    Nested sections are populated by matching the ``validation_alias`` of each
    nested field against the flat environment.
    """

    model_config = SettingsConfigDict(
        extra="ignore",
        populate_by_name=True,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    api: ApiClientConfig = Field(default_factory=ApiClientConfig)
    invalidation: InvalidationConfig = Field(default_factory=InvalidationConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    @model_validator(mode="before")
    @classmethod
    def _build_nested_from_env(cls, data: Any) -> Any:
        """Build nested sections from flat environment variables.

        Constructor arguments take precedence over ``os.environ``.
        """
        if not isinstance(data, dict):
            return data

        result = dict(data)
        merged_source: dict[str, Any] = {**dict(os.environ), **data}

        for field_name, field_info in cls.model_fields.items():
            annotation = field_info.annotation
            if not isinstance(annotation, type) or not issubclass(annotation, BaseModel):
                continue

            nested_data: dict[str, Any] = {}
            for nested_field_name, nested_field in annotation.model_fields.items():
                env_value = cls._resolve_env_value(merged_source, nested_field)
                if env_value is not None:
                    nested_data[nested_field_name] = env_value

            if not nested_data:
                continue
            if isinstance(result.get(field_name), dict):
                result[field_name] = {**nested_data, **result[field_name]}
            elif field_name not in result:
                result[field_name] = nested_data

        return result

    @staticmethod
    def _resolve_env_value(data: dict[str, Any], field: Any) -> Any | None:
        """Resolve a nested field's value using its aliases."""
        aliases: list[str] = []
        alias = field.validation_alias
        if isinstance(alias, AliasChoices):
            aliases.extend(choice for choice in alias.choices if isinstance(choice, str))
        elif isinstance(alias, str):
            aliases.append(alias)
        if field.alias:
            aliases.append(field.alias)

        for name in aliases:
            if name in data:
                return data[name]
        return None

    def as_app_config(self) -> AppConfig:
        return AppConfig(
            api=self.api,
            invalidation=self.invalidation,
            sync=self.sync,
            storage=self.storage,
            runtime=self.runtime,
        )


def load_config(**overrides: Any) -> AppConfig:
    """Load configuration from environment variables and ``.env``.

    Args:
        **overrides: Flat alias names (``PACKSYNC_DB_PATH=...``) or section
            dicts (``storage={"db_path": ...}``) taking precedence over the
            environment.

    Returns:
        Immutable AppConfig instance.

    Raises:
        RuntimeError: If configuration validation fails.
    """
    try:
        settings = Settings(**overrides)
    except ValidationError as exc:
        msg = f"Configuration validation failed: {exc}"
        raise RuntimeError(msg) from exc

    logger.debug(
        "config_loaded",
        extra={"base_url": settings.api.base_url, "db_path": settings.storage.db_path},
    )
    return settings.as_app_config()
