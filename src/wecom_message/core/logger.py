"""Logging utilities for the WeCom message client.

This module provides centralized logging configuration with support for:
- Rich formatting for console output
- Optional rotating log file
"""

from __future__ import annotations

import logging
from contextlib import suppress
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from .config import LoggingConfig

LOGGER_NAMESPACE = "wecom_message"

# Global logger registry
_loggers: dict[str, logging.Logger] = {}
_current_level: int = logging.INFO

console = Console(stderr=True)


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Setup logging for the whole process.

    Args:
        config: LoggingConfig instance. If None, uses defaults.
    """
    global _current_level

    if config is None:
        config = LoggingConfig()

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        with suppress(Exception):
            handler.flush()
        with suppress(Exception):
            handler.close()
    root_logger.handlers.clear()

    level_value = getattr(logging, config.level)
    root_logger.setLevel(level_value)
    logging.getLogger(LOGGER_NAMESPACE).setLevel(level_value)

    console_handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(level_value)
    root_logger.addHandler(console_handler)

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8",
            delay=True,
        )
        file_handler.setLevel(level_value)
        file_handler.setFormatter(logging.Formatter(config.format))
        root_logger.addHandler(file_handler)

    _current_level = level_value

    # Already-created named loggers follow the new level
    for lg in _loggers.values():
        lg.setLevel(level_value)

    get_logger("setup").debug("Logging configured: level=%s", config.level)


def get_logger(name: str) -> logging.Logger:
    """Get or create a logger under the package namespace.

    Args:
        name: Logger name (typically the component name)

    Returns:
        Logger instance
    """
    if name not in _loggers:
        logger = logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")
        logger.setLevel(_current_level)
        _loggers[name] = logger

    return _loggers[name]
