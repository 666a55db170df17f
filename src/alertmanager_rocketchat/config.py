"""Configuration management with Pydantic Settings.

Settings are read from a YAML file (the same layout the webhook has always
used) and may be overridden field by field from environment variables
prefixed with ``RC_WEBHOOK_``, using ``__`` for nested keys, e.g.
``RC_WEBHOOK_CREDENTIALS__PASSWORD``. Values present in the YAML file take
precedence over the environment.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from alertmanager_rocketchat.relay.models import ChannelResolutionPolicy, SeverityColorMap

DEFAULT_CONFIG_FILE = "config/rocketchat.yml"
DEFAULT_LISTEN_ADDRESS = ":9876"


class ConfigError(Exception):
    """Raised when the configuration file cannot be read."""


def _require(value: str, what: str) -> str:
    if not value or not value.strip():
        raise ValueError(f"rocket.chat {what} not provided")
    return value


class EndpointSettings(BaseModel):
    """Rocket.Chat server endpoint."""

    model_config = ConfigDict(validate_default=True)

    scheme: str = ""
    host: str = ""

    @field_validator("scheme")
    @classmethod
    def validate_scheme(cls, v: str) -> str:
        """Validate the URL scheme."""
        _require(v, "scheme")
        if v not in ("http", "https"):
            raise ValueError("rocket.chat scheme must be http or https")
        return v

    @field_validator("host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        return _require(v, "host")

    @property
    def url(self) -> str:
        return f"{self.scheme}://{self.host}"


class CredentialsSettings(BaseModel):
    """Rocket.Chat account used to post messages."""

    model_config = ConfigDict(validate_default=True)

    name: str = ""
    email: str = ""
    password: SecretStr = SecretStr("")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _require(v, "name")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _require(v, "email")

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: SecretStr) -> SecretStr:
        _require(v.get_secret_value(), "password")
        return v


class ChannelSettings(BaseModel):
    """Destination channel settings."""

    model_config = ConfigDict(validate_default=True)

    default_channel_name: str = ""

    @field_validator("default_channel_name")
    @classmethod
    def validate_default_channel_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("default Rocket.Chat channel name is not defined in configuration")
        return v


class RetrySettings(BaseModel):
    """Per-message delivery retry settings."""

    retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    interval_seconds: float = Field(default=3.0, ge=0, description="Delay between attempts")


class Settings(BaseSettings):
    """Main application settings.

    Example:
        ```python
        from alertmanager_rocketchat.config import load_settings

        settings = load_settings("config/rocketchat.yml")
        print(settings.endpoint.url)
        ```
    """

    model_config = SettingsConfigDict(
        env_prefix="RC_WEBHOOK_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    endpoint: EndpointSettings
    credentials: CredentialsSettings
    channel: ChannelSettings
    severity_colors: dict[str, str] = Field(default_factory=dict)
    severity_case_insensitive: bool = Field(
        default=False,
        description="Match severity labels against severity_colors ignoring case",
    )
    retry: RetrySettings = Field(default_factory=RetrySettings)

    request_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Rocket.Chat HTTP request timeout in seconds",
    )
    listen_address: str = Field(
        default=DEFAULT_LISTEN_ADDRESS,
        description="Address the webhook listener binds to, host:port",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    @field_validator("listen_address")
    @classmethod
    def validate_listen_address(cls, v: str) -> str:
        """Validate host:port format."""
        _, sep, port = v.rpartition(":")
        if not sep or not port.isdigit() or not 0 < int(port) < 65536:
            raise ValueError("listen address must be in host:port form")
        return v

    @property
    def listen_host(self) -> str:
        return self.listen_address.rpartition(":")[0].strip("[]") or "0.0.0.0"

    @property
    def listen_port(self) -> int:
        return int(self.listen_address.rpartition(":")[2])

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def severity_color_map(self) -> SeverityColorMap:
        return SeverityColorMap(
            colors=self.severity_colors,
            case_insensitive=self.severity_case_insensitive,
        )

    def channel_policy(self) -> ChannelResolutionPolicy:
        return ChannelResolutionPolicy(
            default_channel_name=self.channel.default_channel_name
        )

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted."""
        return {
            "endpoint": self.endpoint.url,
            "credentials": {
                "name": self.credentials.name,
                "email": self.credentials.email,
                "password": "(set)" if self.credentials.password.get_secret_value() else "(not set)",
            },
            "default_channel": self.channel.default_channel_name,
            "severity_colors": dict(self.severity_colors),
            "retry": {
                "retries": str(self.retry.retries),
                "interval_seconds": str(self.retry.interval_seconds),
            },
            "listen_address": self.listen_address,
            "log_level": self.log_level,
        }


def read_config_file(path: str | Path) -> dict[str, Any]:
    """Read the YAML configuration file into a mapping.

    Raises:
        ConfigError: If the file cannot be read or is not a YAML mapping.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"cannot open config file for reading: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"cannot unmarshal config: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("cannot unmarshal config: top level must be a mapping")
    return data


@lru_cache(maxsize=4)
def load_settings(
    config_file: str = DEFAULT_CONFIG_FILE,
    listen_address: str | None = None,
) -> Settings:
    """Load and validate settings from a YAML file and the environment.

    Args:
        config_file: Path to the YAML configuration file.
        listen_address: Optional listen address overriding the file.

    Returns:
        The validated Settings instance, cached per arguments.

    Raises:
        ConfigError: If the file cannot be read.
        ValidationError: If required values are missing or invalid.
    """
    data = read_config_file(config_file)
    if listen_address is not None:
        data["listen_address"] = listen_address
    return Settings(**data)


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different files or environment variables.
    """
    load_settings.cache_clear()
