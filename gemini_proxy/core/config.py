"""Configuration: process settings, proxy tunables and per-actor state."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from gemini_proxy.core.exceptions import InvalidRequestError

DEFAULT_MODEL = "gemini-2.0-flash"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Google AI
    google_api_key: str = ""
    gemini_base_url: str = DEFAULT_BASE_URL

    # Partial ProxyConfig as JSON, merged over the defaults
    proxy_config_json: str = ""

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs


class RetryConfig(BaseModel):
    """Backoff parameters for the retrying transport."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(3, ge=0)
    base_delay_ms: int = Field(1000, ge=0)  # Start with 1 second
    max_delay_ms: int = Field(30000, ge=0)  # Cap at 30 seconds
    backoff_multiplier: float = Field(2.0, gt=0)


class ProxyConfig(BaseModel):
    """Tunables for one proxy actor."""

    model_config = ConfigDict(frozen=True)

    default_model: str = DEFAULT_MODEL
    max_cache_size: int | None = Field(100, ge=0)  # accepted, not used
    timeout_ms: int = Field(30000, gt=0)  # deadline for a whole transport call
    retry_config: RetryConfig = Field(default_factory=RetryConfig)

    @classmethod
    def from_partial(cls, data: dict[str, Any] | None) -> ProxyConfig:
        """Merge a partial config object over the defaults.

        Keys set to null count as absent, so ``{"max_cache_size": null}``
        keeps the default rather than disabling the field.
        """
        if not data:
            return cls()
        if not isinstance(data, dict):
            raise InvalidRequestError("Invalid proxy config: expected an object")
        merged = _drop_nulls(data)
        try:
            return cls.model_validate(merged)
        except ValidationError as e:
            raise InvalidRequestError(f"Invalid proxy config: {e}") from e


def _drop_nulls(data: dict[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, dict):
            value = _drop_nulls(value)
        result[key] = value
    return result


class ProxyState(BaseModel):
    """Externally-owned state of one proxy actor.

    Carries the vendor credential and tunables; it is passed explicitly into
    every call and never mutated.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    api_key: str
    config: ProxyConfig = Field(default_factory=ProxyConfig)
    store_id: str | None = None

    @classmethod
    def from_init_data(cls, data: bytes | None, actor_id: str) -> ProxyState:
        """Build state from the host's init payload.

        Payload: ``{"google_api_key": ..., "store_id": ..., "config": {...}}``
        where ``config`` may be partial.
        """
        if data is None:
            raise InvalidRequestError("No initialization data provided")
        try:
            raw = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidRequestError(f"Failed to parse init data: {e}") from e

        if not isinstance(raw, dict) or not isinstance(raw.get("google_api_key"), str):
            raise InvalidRequestError("Failed to parse init data: google_api_key is required")

        config = raw.get("config")
        if config is not None and not isinstance(config, dict):
            raise InvalidRequestError("Failed to parse init data: config must be an object")

        try:
            return cls(
                id=actor_id,
                api_key=raw["google_api_key"],
                config=ProxyConfig.from_partial(config),
                store_id=raw.get("store_id"),
            )
        except ValidationError as e:
            raise InvalidRequestError(f"Failed to parse init data: {e}") from e

    @classmethod
    def from_settings(cls, settings: Settings, actor_id: str = "gemini-proxy") -> ProxyState:
        """Build state from process settings (environment / .env)."""
        partial: dict[str, Any] | None = None
        if settings.proxy_config_json:
            try:
                partial = json.loads(settings.proxy_config_json)
            except json.JSONDecodeError as e:
                raise InvalidRequestError(f"PROXY_CONFIG_JSON is not valid JSON: {e}") from e
            if not isinstance(partial, dict):
                raise InvalidRequestError("PROXY_CONFIG_JSON must be a JSON object")
        return cls(
            id=actor_id,
            api_key=settings.google_api_key,
            config=ProxyConfig.from_partial(partial),
        )


settings = Settings()
