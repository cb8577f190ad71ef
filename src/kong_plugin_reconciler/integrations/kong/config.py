"""Kong Admin API and reconciler configuration models."""

from __future__ import annotations

import os
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator


class KongConnectionConfig(BaseModel):
    """Kong Admin API connection configuration."""

    model_config = ConfigDict(extra="forbid")

    base_url: str = "http://localhost:8001"
    timeout: int = 30
    verify_ssl: bool = True
    max_attempts: int = 1

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate base URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        """Validate timeout is positive."""
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v

    @field_validator("max_attempts")
    @classmethod
    def validate_max_attempts(cls, v: int) -> int:
        """Validate at least one attempt is made."""
        if v < 1:
            raise ValueError("max_attempts must be at least 1")
        return v


class KongAuthConfig(BaseModel):
    """Kong Admin API authentication configuration."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["none", "api_key", "mtls"] = "none"
    api_key: str | None = None
    header_name: str = "Kong-Admin-Token"
    cert_path: str | None = None
    key_path: str | None = None
    ca_path: str | None = None


class ReconcilerConfig(BaseModel):
    """Complete configuration for the plugin reconciler."""

    model_config = ConfigDict(extra="forbid")

    connection: KongConnectionConfig = KongConnectionConfig()
    auth: KongAuthConfig = KongAuthConfig()
    output_format: Literal["table", "json", "yaml"] = "table"

    @classmethod
    def from_env(cls, base_config: dict[str, Any] | None = None) -> ReconcilerConfig:
        """Create configuration with environment variable overrides.

        Environment variables take precedence over base_config values.

        Supported environment variables:
            KONG_PLUGIN_ADMIN_URL: Kong Admin API base URL
            KONG_PLUGIN_TIMEOUT: Request timeout in seconds
            KONG_PLUGIN_API_KEY: API key for authentication
            KONG_PLUGIN_AUTH_TYPE: Authentication type (none, api_key, mtls)
            KONG_PLUGIN_OUTPUT: Output format (table, json, yaml)
        """
        config_dict = dict(base_config) if base_config else {}
        connection = dict(config_dict.get("connection") or {})
        auth = dict(config_dict.get("auth") or {})

        if base_url := os.environ.get("KONG_PLUGIN_ADMIN_URL"):
            connection["base_url"] = base_url

        if timeout := os.environ.get("KONG_PLUGIN_TIMEOUT"):
            connection["timeout"] = timeout

        if api_key := os.environ.get("KONG_PLUGIN_API_KEY"):
            auth["api_key"] = api_key
            # A key without an explicit type implies api_key auth
            if auth.get("type", "none") == "none":
                auth["type"] = "api_key"

        if auth_type := os.environ.get("KONG_PLUGIN_AUTH_TYPE"):
            auth["type"] = auth_type

        if output_format := os.environ.get("KONG_PLUGIN_OUTPUT"):
            config_dict["output_format"] = output_format

        config_dict["connection"] = connection
        config_dict["auth"] = auth
        return cls.model_validate(config_dict)
