# sshdeck/settings/config.py

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from ..utils.exceptions import ConfigError, ErrorSeverity
from ..utils.logger import (
    get_logger,
    set_console_log_level,
    set_log_directory,
    set_log_to_file_enabled,
)


class AppConstants:
    """Application metadata and identification constants."""

    APP_ID = "io.sshdeck.SshDeck"
    APP_TITLE = "SSH Deck"
    APP_VERSION = "0.4.0"


class CacheDefaults:
    """Defaults applied to runtime-only fields and new records."""

    TERMINAL_ROWS = 24
    TERMINAL_COLS = 80
    SSH_PORT = 22
    FORWARD_BIND_HOST = "localhost"
    REFRESH_INTERVAL = 30.0  # seconds
    MIN_REFRESH_INTERVAL = 1.0


class ConfigPaths:
    """Platform-aware configuration paths for Linux."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        env = os.environ if environ is None else environ
        if xdg_config := env.get("XDG_CONFIG_HOME"):
            self.CONFIG_DIR = Path(xdg_config) / "sshdeck"
        else:
            self.CONFIG_DIR = Path.home() / ".config" / "sshdeck"
        self.LOG_DIR = self.CONFIG_DIR / "logs"


@dataclass(slots=True)
class CacheSettings:
    """Runtime settings of the entity cache, read from the environment."""

    log_level: str = "WARNING"
    log_to_file: bool = False
    refresh_interval: float = CacheDefaults.REFRESH_INTERVAL

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CacheSettings":
        env = os.environ if environ is None else environ
        settings = cls()

        if level := env.get("SSHDECK_LOG_LEVEL"):
            level = level.strip().upper()
            if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
                raise ConfigError(
                    f"Invalid SSHDECK_LOG_LEVEL: {level}",
                    severity=ErrorSeverity.LOW,
                )
            settings.log_level = level

        settings.log_to_file = env.get("SSHDECK_LOG_TO_FILE", "0").strip().lower() in (
            "1",
            "true",
            "yes",
        )

        if interval := env.get("SSHDECK_REFRESH_INTERVAL"):
            try:
                value = float(interval)
            except ValueError as e:
                raise ConfigError(
                    f"SSHDECK_REFRESH_INTERVAL must be a number, got '{interval}'"
                ) from e
            settings.refresh_interval = max(value, CacheDefaults.MIN_REFRESH_INTERVAL)

        return settings

    def apply_logging(self) -> None:
        """Push the logging part of these settings into the logger manager."""
        set_console_log_level(self.log_level)
        if self.log_to_file:
            set_log_directory(ConfigPaths().LOG_DIR)
        set_log_to_file_enabled(self.log_to_file)
        get_logger("sshdeck.config").info(
            f"{AppConstants.APP_TITLE} v{AppConstants.APP_VERSION} cache settings: "
            f"level={self.log_level}, file={self.log_to_file}, "
            f"refresh={self.refresh_interval}s"
        )
