"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .providers import (
    STREAMING_PROVIDERS,
    STREAMING_PROVIDER_KEYS,
    StreamingProviderDefinition,
)
from .utils import normalize_keys


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="Movie Night", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    combination_count: int = Field(
        default=5, alias="COMBINATION_COUNT", ge=1, le=20
    )
    provider_combination_count: int = Field(
        default=3, alias="PROVIDER_COMBINATION_COUNT", ge=1, le=20
    )
    combination_margin_minutes: int = Field(
        default=30, alias="COMBINATION_MARGIN_MINUTES", ge=1, le=240
    )
    replacement_margin_minutes: int = Field(
        default=15, alias="REPLACEMENT_MARGIN_MINUTES", ge=1, le=120
    )
    max_combination_size: int = Field(
        default=5, alias="MAX_COMBINATION_SIZE", ge=1, le=5
    )
    combination_size_cap: int = Field(
        default=1_000, alias="COMBINATION_SIZE_CAP", ge=1, le=100_000
    )
    default_runtime_minutes: int = Field(
        default=90, alias="DEFAULT_RUNTIME_MINUTES", ge=1
    )
    session_ttl_seconds: int = Field(
        default=3_600, alias="SESSION_TTL_SECONDS", ge=60
    )

    provider_keys: tuple[str, ...] = Field(
        default=STREAMING_PROVIDER_KEYS,
        alias="PROVIDER_KEYS",
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("provider_keys", mode="before")
    @classmethod
    def _parse_provider_keys(cls, value: object) -> tuple[str, ...]:
        """Normalise streaming provider selections from environment values."""

        if value is None:
            return STREAMING_PROVIDER_KEYS
        cleaned = normalize_keys(value)
        if any(key not in STREAMING_PROVIDER_KEYS for key in cleaned):
            raise ValueError("Unknown streaming providers configured")
        if not cleaned:
            return STREAMING_PROVIDER_KEYS
        return cleaned

    @property
    def provider_definitions(self) -> tuple[StreamingProviderDefinition, ...]:
        """Return ordered provider definitions for the enabled keys."""

        definition_map = {definition.key: definition for definition in STREAMING_PROVIDERS}
        return tuple(definition_map[key] for key in self.provider_keys)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
