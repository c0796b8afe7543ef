# sshdeck/utils/logger.py
"""
Logging utilities for sshdeck.

Heavy imports and directory creation are deferred until file logging is
actually enabled, so importing a store never touches the filesystem.
"""

import logging
import os
import sys
import threading
from typing import TYPE_CHECKING, Dict, Optional

if TYPE_CHECKING:
    from pathlib import Path

# Lazy-loaded module references
_logging_handlers = None
_pathlib = None


def _get_logging_handlers():
    """Lazy import of logging.handlers."""
    global _logging_handlers
    if _logging_handlers is None:
        import logging.handlers as lh

        _logging_handlers = lh
    return _logging_handlers


def _get_pathlib():
    """Lazy import of pathlib."""
    global _pathlib
    if _pathlib is None:
        import pathlib

        _pathlib = pathlib
    return _pathlib


class LogLevel:
    """Log levels for the application (lightweight enum alternative)."""

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL


class LoggerConfig:
    """
    Configuration for the logging system.

    Directory creation is deferred until file logging is actually enabled.
    """

    def __init__(self):
        self._log_dir = None
        self.max_file_size = 5 * 1024 * 1024  # 5MB
        self.backup_count = 3
        self.log_to_file = False
        self.console_level = LogLevel.WARNING
        self.file_level = LogLevel.DEBUG

    @property
    def log_dir(self) -> "Path":
        """Get log directory, creating it if necessary."""
        if self._log_dir is None:
            Path = _get_pathlib().Path
            if xdg_state := os.environ.get("XDG_STATE_HOME"):
                self._log_dir = Path(xdg_state) / "sshdeck" / "logs"
            else:
                self._log_dir = Path.home() / ".config" / "sshdeck" / "logs"
            self._log_dir.mkdir(parents=True, exist_ok=True)
        return self._log_dir

    @log_dir.setter
    def log_dir(self, value: "Path"):
        value.mkdir(parents=True, exist_ok=True)
        self._log_dir = value

    @property
    def main_log_file(self) -> "Path":
        return self.log_dir / "sshdeck.log"


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output that preserves alignment."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
        "RESET": "\033[0m",
    }

    def format(self, record):
        """
        Applies color and padding to the level name so ANSI escape codes do
        not break the alignment of the log columns.
        """
        levelname = record.levelname
        original_levelname = record.levelname
        padding_width = 8

        if levelname in self.COLORS:
            colored_levelname = (
                f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
            )
            padding = " " * (padding_width - len(levelname))
            record.levelname = f"{colored_levelname}{padding}"
        else:
            record.levelname = f"{levelname:<{padding_width}}"

        formatted_message = super().format(record)

        # Other handlers in the chain need the original levelname.
        record.levelname = original_levelname
        return formatted_message


class ThreadSafeLogger:
    """Thread-safe logger implementation."""

    def __init__(self, name: str, config: LoggerConfig):
        self.name = name
        self.config = config
        self._logger = logging.getLogger(name)
        self._lock = threading.Lock()
        self._setup_logger()

    def _setup_logger(self):
        """Set up the logger with handlers and formatters based on current config."""
        with self._lock:
            if self._logger.hasHandlers():
                self._logger.handlers.clear()

            # Records also reach root handlers.
            self._logger.propagate = True
            self._logger.setLevel(logging.DEBUG)

            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(self.config.console_level)
            console_handler.setFormatter(
                ColoredFormatter(
                    fmt="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
                    datefmt="%H:%M:%S",
                )
            )
            self._logger.addHandler(console_handler)

            if self.config.log_to_file:
                handlers_module = _get_logging_handlers()
                file_handler = handlers_module.RotatingFileHandler(
                    self.config.main_log_file,
                    maxBytes=self.config.max_file_size,
                    backupCount=self.config.backup_count,
                    encoding="utf-8",
                )
                file_handler.setLevel(self.config.file_level)
                file_handler.setFormatter(
                    logging.Formatter(
                        fmt="%(asctime)s | %(name)s | %(levelname)-8s | %(funcName)s:%(lineno)d | %(message)s",
                        datefmt="%Y-%m-%d %H:%M:%S",
                    )
                )
                self._logger.addHandler(file_handler)

    def debug(self, message: str, **kwargs):
        self._logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs):
        self._logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._logger.warning(message, **kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs):
        self._logger.error(message, exc_info=exc_info, **kwargs)


class LoggerManager:
    """Centralized logger manager."""

    _instance: Optional["LoggerManager"] = None
    _lock = threading.RLock()

    def __new__(cls) -> "LoggerManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self.config = LoggerConfig()
        self._loggers: Dict[str, ThreadSafeLogger] = {}
        logging.getLogger("gi").setLevel(logging.WARNING)
        logging.getLogger("asyncio").setLevel(logging.WARNING)

    def get_logger(self, name: str) -> ThreadSafeLogger:
        if name not in self._loggers:
            with self._lock:
                if name not in self._loggers:
                    self._loggers[name] = ThreadSafeLogger(name, self.config)
        return self._loggers[name]

    def reconfigure_all_loggers(self):
        """Re-applies configuration to all existing logger instances."""
        with self._lock:
            for logger in self._loggers.values():
                logger._setup_logger()

    def set_console_level(self, level: int):
        with self._lock:
            self.config.console_level = level
            self.reconfigure_all_loggers()

    def set_log_to_file_enabled(self, enabled: bool):
        with self._lock:
            if self.config.log_to_file != enabled:
                self.config.log_to_file = enabled
                self.reconfigure_all_loggers()


_logger_manager = LoggerManager()


def get_logger(name: str = "sshdeck") -> ThreadSafeLogger:
    """Get a logger instance."""
    return _logger_manager.get_logger(name)


def set_console_log_level(level_str: str):
    """Set console logging level globally from a string."""
    level_map = {
        "DEBUG": LogLevel.DEBUG,
        "INFO": LogLevel.INFO,
        "WARNING": LogLevel.WARNING,
        "ERROR": LogLevel.ERROR,
        "CRITICAL": LogLevel.CRITICAL,
    }
    level = level_map.get(level_str.upper())
    if level is not None:
        _logger_manager.set_console_level(level)
    else:
        get_logger("sshdeck.logger").error(f"Invalid log level string: {level_str}")


def set_log_to_file_enabled(enabled: bool):
    """Enable or disable logging to files globally."""
    _logger_manager.set_log_to_file_enabled(enabled)


def set_log_directory(path: "Path"):
    """Redirect file logging to another directory."""
    _logger_manager.config.log_dir = path
    _logger_manager.reconfigure_all_loggers()


def log_store_event(event_type: str, kind: str, item_id: str, details: str = ""):
    """Log a cache mutation for one entity."""
    logger = get_logger("sshdeck.stores")
    message = f"{kind.capitalize()} '{item_id}' {event_type}"
    if details:
        message += f": {details}"
    logger.info(message)


def log_error_with_context(error: Exception, context: str, logger_name: str = None):
    """Log an error with context information."""
    logger = get_logger(logger_name or "sshdeck")
    logger.error(f"Error in {context}: {error}", exc_info=True)
