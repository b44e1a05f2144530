"""Configuration management for slashkit.

Loads YAML settings (settings.yaml) and environment variables (.env)
into a typed Config object. Secrets and identities come from the
environment; tuning knobs come from settings.yaml. Property getters
provide safe access with sensible defaults.

Key classes:
    Config: Central configuration manager.

Key functions:
    get_config: Singleton accessor for the global Config instance.
"""

import os
from pathlib import Path
from typing import Optional

import structlog
import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError

logger = structlog.get_logger("slashkit.bot")


class Config:
    """Central configuration manager for slashkit.

    Loads settings.yaml and .env from the config directory.

    Args:
        config_dir: Path to the config directory. Defaults to
            ``<repo_root>/config/``.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        if config_dir is None:
            config_dir = Path(__file__).parent.parent / "config"
        self.config_dir = Path(config_dir)

        # Load environment variables
        env_file = self.config_dir / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        self.settings = self._load_yaml("settings.yaml")

    def _load_yaml(self, filename: str) -> dict:
        """Load a YAML configuration file."""
        filepath = self.config_dir / filename
        if filepath.exists():
            with open(filepath, "r") as f:
                return yaml.safe_load(f) or {}
        return {}

    def _section(self, name: str) -> dict:
        """Return a nested settings mapping; missing or null sections read as empty."""
        section = self.settings.get(name)
        return section if isinstance(section, dict) else {}

    def _setting_str(self, name: str) -> str:
        value = self.settings.get(name)
        return str(value) if value is not None else ""

    def validate(self):
        """Validate critical settings at startup.

        Raises:
            ConfigurationError: If the bot token or application id is missing.
        """
        if not self.bot_token:
            raise ConfigurationError("BOT_TOKEN is required", setting_name="BOT_TOKEN")
        if not self.application_id:
            raise ConfigurationError("CLIENT_ID is required", setting_name="CLIENT_ID")
        if not self.owner_id:
            logger.warning("no_owner_id", msg="Owner-only commands will deny everyone")

        max_requests = self._section("rate_limit").get("max_requests")
        if max_requests is not None and (not isinstance(max_requests, int) or max_requests < 1):
            logger.error(
                "config_invalid_value",
                key="rate_limit.max_requests",
                value=max_requests,
                valid=">= 1",
            )

    # Identity and secrets (environment)
    @property
    def bot_token(self) -> str:
        return os.environ.get("BOT_TOKEN", "")

    @property
    def application_id(self) -> str:
        """Application (client) id used for command declaration."""
        return os.environ.get("CLIENT_ID", "")

    @property
    def owner_id(self) -> str:
        """User id allowed to run owner-only commands. Env OWNER_ID takes precedence."""
        return os.environ.get("OWNER_ID") or self._setting_str("owner_id")

    @property
    def environment(self) -> str:
        return os.environ.get("BOT_ENV") or self.settings.get("environment") or "development"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def dev_guild_id(self) -> Optional[str]:
        """Guild to scope command declaration to during development."""
        value = os.environ.get("DEV_GUILD_ID") or self.settings.get("dev_guild_id")
        return str(value) if value else None

    @property
    def declare_commands_on_ready(self) -> bool:
        """Whether to bulk-declare commands when the gateway is ready (default True)."""
        return self.settings.get("declare_commands_on_ready", True)

    # Logging configuration
    @property
    def log_dir(self) -> Path:
        """Get log directory path."""
        configured = self.settings.get("log_dir")
        if configured:
            return Path(configured).expanduser()
        return Path(__file__).parent.parent / "logs"

    @property
    def logging_level(self) -> str:
        """Global log level (default INFO). Env LOG_LEVEL takes precedence."""
        log_config = self._section("logging")
        return os.environ.get("LOG_LEVEL") or log_config.get("level", "INFO")

    @property
    def logging_subsystem_levels(self) -> dict:
        """Per-subsystem log level overrides. E.g. {"dispatch": "DEBUG"}."""
        log_config = self._section("logging")
        return log_config.get("subsystem_levels", {})

    @property
    def logging_max_file_size_mb(self) -> int:
        """Max size per log file in MB before rotation (default 10)."""
        log_config = self._section("logging")
        return log_config.get("max_file_size_mb", 10)

    @property
    def logging_backup_count(self) -> int:
        """Number of rotated log files to keep (default 5)."""
        log_config = self._section("logging")
        return log_config.get("backup_count", 5)

    # Rate limiting
    @property
    def rate_limit_enabled(self) -> bool:
        rl_config = self._section("rate_limit")
        return rl_config.get("enabled", True)

    @property
    def rate_limit_max(self) -> int:
        """Max command invocations per user per window (default 5)."""
        rl_config = self._section("rate_limit")
        val = os.environ.get("RATE_LIMIT_MAX") or rl_config.get("max_requests", 5)
        try:
            return max(1, int(val))
        except (ValueError, TypeError):
            logger.warning("config_invalid_rate_limit_max", value=val)
            return 5

    @property
    def rate_limit_window_seconds(self) -> float:
        """Rate limit window length in seconds (default 60)."""
        rl_config = self._section("rate_limit")
        val = rl_config.get("window_seconds", 60)
        try:
            return float(val)
        except (ValueError, TypeError):
            logger.warning("config_invalid_rate_limit_window", value=val)
            return 60.0


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config
