"""Config - Client configuration for the bundled HTTP transport.

Loads YAML client configuration with ${ENV_VAR} substitution and validates it
into a ClientConfig. Example file:

    base_url: https://api.example.com
    headers:
      Authorization: Bearer ${API_TOKEN}
    timeout: 10
    verify_ssl: true
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ConfigError(Exception):
    """Raised when configuration loading fails."""


class ClientConfig(BaseModel):
    """Connection settings for HttpxTransport."""

    model_config = ConfigDict(extra="forbid")

    base_url: str = Field(description="Base URL that request paths are appended to")
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Headers sent with every request (supports ${ENV_VAR} substitution)",
    )
    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    follow_redirects: bool = Field(default=True, description="Follow HTTP redirects")
    verify_ssl: bool = Field(default=True, description="Verify server certificates")
    ca_bundle: str | None = Field(default=None, description="Path to a CA bundle")
    cert: str | None = Field(default=None, description="Client certificate for mTLS")
    key: str | None = Field(default=None, description="Client certificate key for mTLS")
    key_password: str | None = Field(default=None, description="Password for the key")
    ciphers: str | None = Field(default=None, description="OpenSSL cipher string")

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v


def load_client_config(config_path: Path) -> ClientConfig:
    """Load client configuration from YAML with ${ENV_VAR} substitution."""
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError("Config file must be a YAML mapping")

    raw_config = _expand_env(raw_config)

    try:
        return ClientConfig.model_validate(raw_config)
    except Exception as e:
        raise ConfigError(f"Invalid config structure: {e}") from e


_PLACEHOLDER = re.compile(r"\$\{(?P<name>[^}]+)\}")


def _expand_env(value: Any, location: str = "<root>") -> Any:
    """Replace ${NAME} placeholders in every string of a parsed YAML document.

    location names the key path being expanded (e.g. headers.Authorization)
    and is only used in error messages.
    """
    if isinstance(value, dict):
        return {
            key: _expand_env(item, str(key) if location == "<root>" else f"{location}.{key}")
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_expand_env(item, f"{location}[{index}]") for index, item in enumerate(value)]
    if isinstance(value, str):
        return _PLACEHOLDER.sub(lambda match: _env_value(match["name"], location), value)
    return value


def _env_value(name: str, location: str) -> str:
    try:
        return os.environ[name]
    except KeyError:
        raise ConfigError(
            f"Environment variable '{name}' referenced by '{location}' is not set"
        ) from None
