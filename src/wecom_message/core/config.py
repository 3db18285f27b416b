"""Configuration management for the WeCom message client.

This module provides configuration models and loading functionality using Pydantic
for validation and type safety.
"""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import IO, Any, Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# WeCom access tokens live for 7200 seconds; refreshing at most every 7000
# keeps the cached token ahead of platform-side expiry.
MAX_TOKEN_REFRESH_INTERVAL = 7000

DEFAULT_BASE_URL = "https://qyapi.weixin.qq.com"
DEFAULT_TOKEN_CACHE_PATH = Path(tempfile.gettempdir()) / "wecom_message" / "token.json"

_DOTENV_LOADED = False


def _load_env_once() -> None:
    """Load environment variables from a .env file exactly once."""

    global _DOTENV_LOADED
    if not _DOTENV_LOADED:
        load_dotenv()
        _DOTENV_LOADED = True


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand environment variables in configuration data."""

    if isinstance(data, str):
        return os.path.expandvars(data)
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    return data


def _read_config_file(
    path: str | Path,
    parse: Callable[[IO[str]], Any],
    error: type[Exception],
    kind: str,
) -> dict[str, Any]:
    """Parse a config file and expand ``${VAR}`` references in its values.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file cannot be parsed or is not a mapping.
    """
    _load_env_once()
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, encoding="utf-8") as handle:
        try:
            config_data = parse(handle)
        except error as exc:
            raise ValueError(f"Invalid {kind} in config file: {exc}") from exc

    if not config_data:
        return {}
    if not isinstance(config_data, dict):
        raise ValueError(f"{kind} config file must contain a mapping")
    return _expand_env_vars(config_data)


class MessageDefaults(BaseModel):
    """Fields merged into every outgoing message unless overridden."""

    to_user: str = Field(default="@all", description="Recipient user IDs separated by '|'")
    to_party: str = Field(default="", description="Recipient department IDs separated by '|'")
    to_tag: str = Field(default="", description="Recipient tag IDs separated by '|'")
    agent_id: int | None = Field(
        default=None, ge=0, description="Application agent ID (defaults to the client's)"
    )
    enable_duplicate_check: bool = Field(
        default=False, description="Ask the platform to drop duplicate messages"
    )
    duplicate_check_interval: int = Field(
        default=1800,
        ge=0,
        le=14400,
        description="Duplicate check window in seconds",
    )

    def to_fields(self) -> dict[str, Any]:
        """Render the defaults using the platform's field names."""
        return {
            "touser": self.to_user,
            "toparty": self.to_party,
            "totag": self.to_tag,
            "agentid": self.agent_id,
            "enable_duplicate_check": 1 if self.enable_duplicate_check else 0,
            "duplicate_check_interval": self.duplicate_check_interval,
        }


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )
    log_file: str | None = Field(default=None, description="Log file path")
    max_bytes: int = Field(default=10485760, description="Max log file size (10MB)")
    backup_count: int = Field(default=5, description="Number of backup files")

    @field_validator("level", mode="before")
    @classmethod
    def normalise_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value


class WeComConfig(BaseSettings):
    """Main configuration for the WeCom message client."""

    model_config = SettingsConfigDict(
        env_prefix="WECOM_",
        env_nested_delimiter="__",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    corp_id: str = Field(..., min_length=1, description="Enterprise (corp) ID")
    corp_secret: str = Field(..., min_length=1, description="Application secret")
    agent_id: int = Field(..., ge=0, description="Application agent ID")

    token_refresh_interval: int = Field(
        default=MAX_TOKEN_REFRESH_INTERVAL,
        ge=1,
        description=f"Seconds between token refreshes (capped at {MAX_TOKEN_REFRESH_INTERVAL})",
    )
    retry: int = Field(
        default=2,
        ge=0,
        description="Extra attempts after a transport or decoding failure",
    )
    retry_backoff_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Initial delay before retrying, doubled after each failure",
    )
    timeout: float = Field(default=10.0, gt=0.0, description="HTTP timeout in seconds")
    base_url: str = Field(default=DEFAULT_BASE_URL, description="WeCom API base URL")

    persist_token: bool = Field(
        default=True, description="Persist the access token between process restarts"
    )
    token_cache_path: Path = Field(
        default=DEFAULT_TOKEN_CACHE_PATH, description="Access token cache file"
    )

    defaults: MessageDefaults = Field(
        default_factory=MessageDefaults, description="Default message fields"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    @field_validator("token_refresh_interval")
    @classmethod
    def clamp_refresh_interval(cls, value: int) -> int:
        return min(value, MAX_TOKEN_REFRESH_INTERVAL)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return value

    @model_validator(mode="after")
    def apply_agent_default(self) -> WeComConfig:
        if self.defaults.agent_id is None:
            self.defaults = self.defaults.model_copy(update={"agent_id": self.agent_id})
        return self

    @property
    def token_cache_file(self) -> Path | None:
        """Token cache location, or None when persistence is disabled."""
        return self.token_cache_path if self.persist_token else None

    @property
    def credential_fingerprint(self) -> str:
        """Stable identifier of the corp ID and secret, safe to write to disk."""
        digest = hashlib.sha256(self.corp_secret.encode("utf-8")).hexdigest()[:16]
        return f"{self.corp_id}:{digest}"

    @classmethod
    def from_yaml(cls, path: str | Path) -> WeComConfig:
        """Load configuration from a YAML file."""
        return cls(**_read_config_file(path, yaml.safe_load, yaml.YAMLError, "YAML"))

    @classmethod
    def from_json(cls, path: str | Path) -> WeComConfig:
        """Load configuration from a JSON file."""
        return cls(**_read_config_file(path, json.load, json.JSONDecodeError, "JSON"))

    @classmethod
    def from_env(cls) -> WeComConfig:
        """Load configuration from WECOM_* environment variables."""

        _load_env_once()
        return cls()

    def to_dict(self) -> dict[str, Any]:
        """Dump the configuration as plain JSON-compatible data."""
        return self.model_dump(mode="json")
