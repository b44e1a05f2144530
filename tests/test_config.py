"""Tests for configuration loading and validation."""

import pytest

from slashkit.config import Config
from slashkit.exceptions import ConfigurationError

ENV_VARS = (
    "BOT_TOKEN", "CLIENT_ID", "OWNER_ID", "BOT_ENV", "DEV_GUILD_ID",
    "LOG_LEVEL", "RATE_LIMIT_MAX",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ENV_VARS:
        # setenv first so values loaded from .env are undone after the test
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)


def write_settings(tmp_path, text):
    (tmp_path / "settings.yaml").write_text(text)
    return Config(config_dir=tmp_path)


def test_defaults_without_files(tmp_path):
    config = Config(config_dir=tmp_path)
    assert config.settings == {}
    assert config.environment == "development"
    assert config.is_development is True
    assert config.owner_id == ""
    assert config.dev_guild_id is None
    assert config.declare_commands_on_ready is True
    assert config.logging_level == "INFO"
    assert config.rate_limit_enabled is True
    assert config.rate_limit_max == 5
    assert config.rate_limit_window_seconds == 60.0


def test_settings_yaml_values(tmp_path):
    config = write_settings(
        tmp_path,
        "environment: production\n"
        "owner_id: 12345\n"
        "dev_guild_id: 777\n"
        "logging:\n"
        "  level: DEBUG\n"
        "  subsystem_levels:\n"
        "    dispatch: WARNING\n"
        "  backup_count: 2\n"
        "rate_limit:\n"
        "  enabled: false\n"
        "  max_requests: 9\n"
        "  window_seconds: 15\n",
    )
    assert config.is_production is True
    assert config.owner_id == "12345"
    assert config.dev_guild_id == "777"
    assert config.logging_level == "DEBUG"
    assert config.logging_subsystem_levels == {"dispatch": "WARNING"}
    assert config.logging_backup_count == 2
    assert config.rate_limit_enabled is False
    assert config.rate_limit_max == 9
    assert config.rate_limit_window_seconds == 15.0


def test_environment_overrides_settings(tmp_path, monkeypatch):
    config = write_settings(tmp_path, "owner_id: 1\nlogging:\n  level: DEBUG\n")
    monkeypatch.setenv("OWNER_ID", "2")
    monkeypatch.setenv("LOG_LEVEL", "ERROR")
    monkeypatch.setenv("BOT_ENV", "production")
    assert config.owner_id == "2"
    assert config.logging_level == "ERROR"
    assert config.is_production is True


def test_invalid_rate_limit_falls_back(tmp_path, monkeypatch):
    config = Config(config_dir=tmp_path)
    monkeypatch.setenv("RATE_LIMIT_MAX", "lots")
    assert config.rate_limit_max == 5


def test_dotenv_loaded(tmp_path):
    (tmp_path / ".env").write_text("BOT_TOKEN=abc\nCLIENT_ID=123\n")
    config = Config(config_dir=tmp_path)
    assert config.bot_token == "abc"
    assert config.application_id == "123"


def test_null_settings_use_defaults(tmp_path):
    config = write_settings(tmp_path, "owner_id:\nenvironment:\nlogging:\nrate_limit:\n")
    assert config.owner_id == ""
    assert config.environment == "development"
    assert config.logging_level == "INFO"
    assert config.logging_subsystem_levels == {}
    assert config.rate_limit_enabled is True
    assert config.rate_limit_max == 5
    assert config.rate_limit_window_seconds == 60.0


class TestValidate:

    def test_missing_token(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            Config(config_dir=tmp_path).validate()
        assert exc_info.value.setting_name == "BOT_TOKEN"
        assert exc_info.value.is_fatal

    def test_missing_client_id(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BOT_TOKEN", "abc")
        with pytest.raises(ConfigurationError) as exc_info:
            Config(config_dir=tmp_path).validate()
        assert exc_info.value.setting_name == "CLIENT_ID"

    def test_valid(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BOT_TOKEN", "abc")
        monkeypatch.setenv("CLIENT_ID", "123")
        Config(config_dir=tmp_path).validate()

    def test_valid_with_null_rate_limit(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BOT_TOKEN", "abc")
        monkeypatch.setenv("CLIENT_ID", "123")
        write_settings(tmp_path, "rate_limit:\n").validate()
