"""
Logging configuration for the NVIDIA GPU exporter.

Features:
- Console output on stderr, colored by level and component when it is a TTY
- Optional rotating log file
- Per-module log levels

All loggers are children of "nvidia_gpu_exporter"; use get_logger().
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from .config.schema import LoggingConfig


ROOT_LOGGER = "nvidia_gpu_exporter"

RESET = "\033[0m"

# SGR sequences per level
LEVEL_COLORS = {
    logging.DEBUG: "\033[2;36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;91m",
}

# First matching component (logger name without the root prefix) wins
COMPONENT_COLORS = (
    ("config", "\033[35m"),
    ("nvml", "\033[34m"),
    ("collectors", "\033[36m"),
    ("exporter", "\033[94m"),
    ("app", "\033[32m"),
)

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _paint(text: str, color: str) -> str:
    return f"{color}{text}{RESET}" if color else text


def component_color(logger_name: str) -> str:
    """Color for a logger name, or an empty string."""
    component = logger_name.lower().removeprefix(f"{ROOT_LOGGER}.")
    for key, color in COMPONENT_COLORS:
        if key in component:
            return color
    return ""


class ColoredFormatter(logging.Formatter):
    """
    Console formatter with ANSI colors.

    Formats a copy of the record, so handlers sharing the record (such as
    the file handler) never see escape codes.
    """

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        use_colors: bool = True,
    ):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors:
            return super().format(record)

        colored = logging.makeLogRecord(record.__dict__)
        level_color = LEVEL_COLORS.get(record.levelno, "")
        colored.levelname = _paint(f"{record.levelname:8}", level_color)
        colored.name = _paint(record.name, component_color(record.name))
        if record.levelno >= logging.WARNING:
            colored.msg = _paint(str(record.msg), level_color)
        return super().format(colored)


class PlainFormatter(logging.Formatter):
    """File formatter with a fixed-width level column."""

    def format(self, record: logging.LogRecord) -> str:
        padded = logging.makeLogRecord(record.__dict__)
        padded.levelname = f"{record.levelname:8}"
        return super().format(padded)


@dataclass
class LogConfig:
    """Handler-level logging settings."""

    level: str = "warning"  # Console level
    colors: bool = True

    file_path: str | None = None  # None disables the log file
    file_level: str = "debug"
    file_max_bytes: int = 10 * 1024 * 1024  # 10 MB
    file_backup_count: int = 5

    format: str = DEFAULT_FORMAT
    date_format: str = DEFAULT_DATE_FORMAT

    # Per-module levels (module name below the root -> level)
    module_levels: dict[str, str] | None = None

    @classmethod
    def from_config(cls, config: LoggingConfig) -> LogConfig:
        """Create LogConfig from the logging section of the application config."""
        return cls(level=config.level, colors=config.colors, file_path=config.file)


def get_log_level(level_str: str) -> int:
    """Convert a level name to a logging constant (INFO if unknown)."""
    return LEVELS.get(level_str.lower(), logging.INFO)


def _console_handler(config: LogConfig) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(get_log_level(config.level))
    use_colors = config.colors and hasattr(sys.stderr, "isatty") and sys.stderr.isatty()
    handler.setFormatter(
        ColoredFormatter(fmt=config.format, datefmt=config.date_format, use_colors=use_colors)
    )
    return handler


def _file_handler(config: LogConfig, path: str) -> logging.Handler:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=config.file_max_bytes,
        backupCount=config.file_backup_count,
    )
    handler.setLevel(get_log_level(config.file_level))
    handler.setFormatter(PlainFormatter(fmt=config.format, datefmt=config.date_format))
    return handler


def setup_logging(config: LogConfig | None = None) -> None:
    """
    Configure the exporter's loggers.

    Replaces any handlers installed by a previous call.

    Args:
        config: Logging configuration (uses defaults if None)
    """
    config = config or LogConfig()

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(logging.DEBUG)  # Handlers do the filtering

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.addHandler(_console_handler(config))
    if config.file_path:
        root_logger.addHandler(_file_handler(config, config.file_path))

    for module_name, level_str in (config.module_levels or {}).items():
        get_logger(module_name).setLevel(get_log_level(level_str))


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a component.

    Args:
        name: Component name (prefixed with nvidia_gpu_exporter unless it already is)

    Returns:
        Logger instance
    """
    if name.startswith(ROOT_LOGGER):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
