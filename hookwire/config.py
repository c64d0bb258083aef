"""Configuration management for hookwire.

Loads YAML settings (settings.yaml) and environment variables (.env)
into a Config object. Property getters provide safe access with
defaults for logging, module discovery, and host error handling.

Key classes:
    Config: Central configuration manager.

Key functions:
    get_config: Singleton accessor for the global Config instance.
"""

import os
from pathlib import Path
from typing import List, Optional

import structlog
import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError

logger = structlog.get_logger("hookwire.runtime")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_ERROR_MESSAGE = "Something went wrong. Please try again later."


class Config:
    """Central configuration manager for hookwire.

    Args:
        config_dir: Path to the config directory. Defaults to
            ``<repo_root>/config/``.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        if config_dir is None:
            config_dir = Path(__file__).parent.parent / "config"
        self.config_dir = Path(config_dir)

        env_file = self.config_dir / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        self.settings = self._load_yaml("settings.yaml")

    def _load_yaml(self, filename: str) -> dict:
        """Load a YAML configuration file (missing file -> empty dict)."""
        filepath = self.config_dir / filename
        if not filepath.exists():
            return {}
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Cannot parse {filename}: {e}", setting_name=filename
            ) from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"{filename} must contain a mapping at the top level",
                setting_name=filename,
            )
        return data

    def validate(self) -> None:
        """Validate settings at startup.

        Logs warnings/errors but does not raise -- the runtime starts
        with defaults for anything malformed.
        """
        log_config = self.settings.get("logging", {})
        level = log_config.get("level") if isinstance(log_config, dict) else None
        if level is not None and str(level).upper() not in LOG_LEVELS:
            logger.error("config_invalid_value", key="logging.level", value=level)

        allowlist = self.settings.get("module_allowlist")
        if allowlist is not None and not isinstance(allowlist, list):
            logger.error("module_allowlist_invalid_type", type=type(allowlist).__name__)

        modules = self.settings.get("modules", {})
        if not isinstance(modules, dict):
            logger.error("config_invalid_value", key="modules", value=type(modules).__name__)
            return
        for name, section in modules.items():
            if not isinstance(section, dict):
                logger.error("config_invalid_value", key=f"modules.{name}", value=section)
                continue
            enabled = section.get("enabled")
            if enabled is not None and not isinstance(enabled, bool):
                logger.error(
                    "config_invalid_value",
                    key=f"modules.{name}.enabled",
                    value=enabled,
                    valid="true/false",
                )

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
        """Global log level. Env var HOOKWIRE_LOG_LEVEL takes precedence."""
        env_level = os.environ.get("HOOKWIRE_LOG_LEVEL")
        if env_level:
            return env_level.upper()
        log_config = self.settings.get("logging", {})
        return str(log_config.get("level", "INFO")).upper()

    @property
    def logging_subsystem_levels(self) -> dict:
        """Per-subsystem log level overrides. E.g. {"modules": "DEBUG"}."""
        log_config = self.settings.get("logging", {})
        return log_config.get("subsystem_levels", {})

    @property
    def logging_max_file_size_mb(self) -> int:
        """Max size per log file in MB before rotation (default 10)."""
        log_config = self.settings.get("logging", {})
        return log_config.get("max_file_size_mb", 10)

    @property
    def logging_backup_count(self) -> int:
        """Number of rotated log files to keep (default 5)."""
        log_config = self.settings.get("logging", {})
        return log_config.get("backup_count", 5)

    # Module configuration
    @property
    def modules_dir(self) -> Path:
        """Directory scanned for ``<name>/module.py`` files."""
        configured = self.settings.get("modules_dir")
        if configured:
            return Path(configured).expanduser()
        return self.config_dir.parent / "modules"

    @property
    def module_allowlist(self) -> Optional[List[str]]:
        """Names of modules allowed to load, or None for no restriction."""
        allowlist = self.settings.get("module_allowlist")
        if allowlist is None:
            return None
        if not isinstance(allowlist, list):
            logger.error("module_allowlist_invalid_type", type=type(allowlist).__name__)
            return None
        return allowlist

    def module_settings(self, name: str) -> dict:
        """Return the ``modules.<name>`` settings section ({} if absent)."""
        modules = self.settings.get("modules", {})
        if not isinstance(modules, dict):
            return {}
        section = modules.get(name, {})
        return section if isinstance(section, dict) else {}

    @property
    def data_dir(self) -> Path:
        """Base directory for module data files."""
        configured = self.settings.get("data_dir")
        if configured:
            return Path(configured).expanduser()
        return self.config_dir.parent / "data"

    # Host error handling
    @property
    def error_user_message(self) -> str:
        """User-facing fallback text shown when a handler fails."""
        errors_config = self.settings.get("errors", {})
        return errors_config.get("user_message", DEFAULT_ERROR_MESSAGE)


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config
