from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class ApiClientConfig(BaseModel):
    """REST backend connection and retry configuration."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    base_url: str = Field(default="http://localhost:5000", validation_alias="PACKSYNC_API_BASE_URL")
    request_timeout_sec: float = Field(default=30.0, validation_alias="PACKSYNC_REQUEST_TIMEOUT_SEC")
    get_retries: int = Field(default=2, validation_alias="PACKSYNC_GET_RETRIES")
    retry_initial_delay_sec: float = Field(
        default=0.5, validation_alias="PACKSYNC_RETRY_INITIAL_DELAY_SEC"
    )
    retry_max_delay_sec: float = Field(default=5.0, validation_alias="PACKSYNC_RETRY_MAX_DELAY_SEC")
    retry_backoff_factor: float = Field(
        default=2.0, validation_alias="PACKSYNC_RETRY_BACKOFF_FACTOR"
    )

    @field_validator("base_url", mode="before")
    @classmethod
    def _validate_base_url(cls, value: Any) -> str:
        url = str(value or "http://localhost:5000").strip()
        if not url:
            return "http://localhost:5000"
        if not url.startswith(("http://", "https://")):
            msg = "API base URL must start with http:// or https://"
            raise ValueError(msg)
        return url.rstrip("/")

    @field_validator("request_timeout_sec", mode="before")
    @classmethod
    def _validate_timeout(cls, value: Any) -> float:
        try:
            timeout = float(str(value if value not in (None, "") else 30.0))
        except ValueError as exc:
            msg = "Request timeout must be a valid number"
            raise ValueError(msg) from exc
        if timeout <= 0:
            msg = "Request timeout must be positive"
            raise ValueError(msg)
        if timeout > 600:
            msg = "Request timeout too large (max 600 seconds)"
            raise ValueError(msg)
        return timeout

    @field_validator("get_retries", mode="before")
    @classmethod
    def _validate_retries(cls, value: Any) -> int:
        try:
            parsed = int(str(value if value not in (None, "") else 2))
        except ValueError as exc:
            msg = "GET retries must be a valid integer"
            raise ValueError(msg) from exc
        if parsed < 0 or parsed > 10:
            msg = "GET retries must be between 0 and 10"
            raise ValueError(msg)
        return parsed

    @field_validator(
        "retry_initial_delay_sec",
        "retry_max_delay_sec",
        "retry_backoff_factor",
        mode="before",
    )
    @classmethod
    def _validate_positive_float(cls, value: Any, info: ValidationInfo) -> float:
        default = cls.model_fields[info.field_name].default
        try:
            parsed = float(str(value if value not in (None, "") else default))
        except ValueError as exc:
            msg = f"{info.field_name.replace('_', ' ')} must be a valid number"
            raise ValueError(msg) from exc
        if parsed <= 0:
            msg = f"{info.field_name.replace('_', ' ').capitalize()} must be positive"
            raise ValueError(msg)
        return parsed
