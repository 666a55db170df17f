"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest
import yaml
from pydantic import ValidationError

from alertmanager_rocketchat.config import (
    ChannelSettings,
    ConfigError,
    CredentialsSettings,
    EndpointSettings,
    RetrySettings,
    Settings,
    clear_settings_cache,
    load_settings,
    read_config_file,
)

if TYPE_CHECKING:
    from collections.abc import Iterator


SAMPLE_CONFIG = Path(__file__).resolve().parent.parent / "config" / "rocketchat.yml"

VALID_CONFIG: dict[str, Any] = {
    "endpoint": {"scheme": "https", "host": "chat.example.com"},
    "credentials": {
        "name": "alertbot",
        "email": "alertbot@example.com",
        "password": "secret",
    },
    "severity_colors": {"warning": "#f2e826", "critical": "#ff0000"},
    "channel": {"default_channel_name": "alerts"},
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """Isolate tests from RC_WEBHOOK_* variables, .env files and the cache."""
    import os

    for key in list(os.environ):
        if key.startswith("RC_WEBHOOK_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    yield
    clear_settings_cache()


def write_config(tmp_path: Path, data: dict[str, Any]) -> str:
    path = tmp_path / "rocketchat.yml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


def without(section: str, key: str) -> dict[str, Any]:
    data = {k: dict(v) if isinstance(v, dict) else v for k, v in VALID_CONFIG.items()}
    del data[section][key]
    return data


class TestEndpointSettings:
    """Tests for EndpointSettings."""

    def test_url(self) -> None:
        endpoint = EndpointSettings(scheme="https", host="chat.example.com:3000")
        assert endpoint.url == "https://chat.example.com:3000"

    def test_missing_host(self) -> None:
        with pytest.raises(ValidationError, match="host not provided"):
            EndpointSettings(scheme="https")

    def test_missing_scheme(self) -> None:
        with pytest.raises(ValidationError, match="scheme not provided"):
            EndpointSettings(host="chat.example.com")

    def test_invalid_scheme(self) -> None:
        with pytest.raises(ValidationError, match="http or https"):
            EndpointSettings(scheme="ws", host="chat.example.com")


class TestCredentialsSettings:
    """Tests for CredentialsSettings."""

    @pytest.mark.parametrize("field", ["name", "email", "password"])
    def test_each_field_required(self, field: str) -> None:
        values = {"name": "bot", "email": "bot@example.com", "password": "pw"}
        values[field] = ""
        with pytest.raises(ValidationError, match=f"{field} not provided"):
            CredentialsSettings(**values)

    def test_password_is_secret(self) -> None:
        creds = CredentialsSettings(name="bot", email="bot@example.com", password="pw")
        assert "pw" not in repr(creds)
        assert creds.password.get_secret_value() == "pw"


class TestChannelSettings:
    """Tests for ChannelSettings."""

    @pytest.mark.parametrize("name", ["", "   "])
    def test_default_channel_required(self, name: str) -> None:
        with pytest.raises(ValidationError, match="channel name is not defined"):
            ChannelSettings(default_channel_name=name)


class TestRetrySettings:
    """Tests for RetrySettings."""

    def test_defaults(self) -> None:
        retry = RetrySettings()
        assert retry.retries == 3
        assert retry.interval_seconds == 3.0

    def test_negative_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RetrySettings(retries=-1)
        with pytest.raises(ValidationError):
            RetrySettings(interval_seconds=-0.5)


class TestLoadSettings:
    """Tests for loading the YAML configuration file."""

    def test_valid_file(self, tmp_path: Path) -> None:
        settings = load_settings(write_config(tmp_path, VALID_CONFIG))

        assert settings.endpoint.url == "https://chat.example.com"
        assert settings.credentials.name == "alertbot"
        assert settings.channel.default_channel_name == "alerts"
        assert settings.severity_colors["warning"] == "#f2e826"
        assert settings.retry.retries == 3
        assert settings.listen_address == ":9876"
        assert settings.listen_host == "0.0.0.0"
        assert settings.listen_port == 9876
        assert settings.log_level == "INFO"

    def test_settings_cached(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, VALID_CONFIG)
        assert load_settings(path) is load_settings(path)

    def test_listen_address_override(self, tmp_path: Path) -> None:
        settings = load_settings(write_config(tmp_path, VALID_CONFIG), "127.0.0.1:8080")
        assert settings.listen_host == "127.0.0.1"
        assert settings.listen_port == 8080

    @pytest.mark.parametrize("address", ["9876", "host:", "host:99999", "host:http"])
    def test_invalid_listen_address(self, tmp_path: Path, address: str) -> None:
        with pytest.raises(ValidationError, match="host:port"):
            load_settings(write_config(tmp_path, VALID_CONFIG), address)

    @pytest.mark.parametrize(
        ("section", "key", "message"),
        [
            ("credentials", "name", "name not provided"),
            ("credentials", "email", "email not provided"),
            ("credentials", "password", "password not provided"),
            ("endpoint", "host", "host not provided"),
            ("endpoint", "scheme", "scheme not provided"),
            ("channel", "default_channel_name", "channel name is not defined"),
        ],
    )
    def test_missing_required_value(
        self, tmp_path: Path, section: str, key: str, message: str
    ) -> None:
        with pytest.raises(ValidationError, match=message):
            load_settings(write_config(tmp_path, without(section, key)))

    def test_missing_section(self, tmp_path: Path) -> None:
        data = dict(VALID_CONFIG)
        del data["channel"]
        with pytest.raises(ValidationError, match="channel"):
            load_settings(write_config(tmp_path, data))

    def test_environment_fills_missing_value(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("RC_WEBHOOK_CREDENTIALS__PASSWORD", "from-env")
        settings = load_settings(write_config(tmp_path, without("credentials", "password")))
        assert settings.credentials.password.get_secret_value() == "from-env"

    def test_sample_config_takes_password_from_environment(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("RC_WEBHOOK_CREDENTIALS__PASSWORD", "from-env")
        settings = load_settings(str(SAMPLE_CONFIG))
        assert settings.credentials.password.get_secret_value() == "from-env"
        assert settings.credentials.name == "alertbot"

    def test_sample_config_requires_password(self) -> None:
        with pytest.raises(ValidationError, match="password not provided"):
            load_settings(str(SAMPLE_CONFIG))

    def test_environment_top_level(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("RC_WEBHOOK_LOG_LEVEL", "DEBUG")
        settings = load_settings(write_config(tmp_path, VALID_CONFIG))
        assert settings.log_level == "DEBUG"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="cannot open config file"):
            load_settings(str(tmp_path / "nope.yml"))

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yml"
        path.write_text("endpoint: [unclosed")
        with pytest.raises(ConfigError, match="cannot unmarshal"):
            read_config_file(path)

    def test_non_mapping_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            read_config_file(path)

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert read_config_file(path) == {}


class TestSettingsHelpers:
    """Tests for objects derived from settings."""

    @pytest.fixture
    def settings(self) -> Settings:
        return Settings(**VALID_CONFIG)

    def test_severity_color_map(self, settings: Settings) -> None:
        colors = settings.severity_color_map()
        assert colors.lookup("critical") == "#ff0000"
        assert colors.lookup("CRITICAL") is None

    def test_case_insensitive_color_map(self) -> None:
        settings = Settings(**VALID_CONFIG, severity_case_insensitive=True)
        assert settings.severity_color_map().lookup("CRITICAL") == "#ff0000"

    def test_channel_policy(self, settings: Settings) -> None:
        policy = settings.channel_policy()
        assert policy.resolve({}) == "alerts"

    def test_logging_level(self, settings: Settings) -> None:
        import logging

        assert settings.get_logging_level() == logging.INFO

    def test_redacted_summary(self, settings: Settings) -> None:
        summary = settings.redacted_summary()
        assert summary["endpoint"] == "https://chat.example.com"
        assert summary["credentials"] == {
            "name": "alertbot",
            "email": "alertbot@example.com",
            "password": "(set)",
        }
        assert "secret" not in str(summary)
