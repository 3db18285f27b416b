"""Core modules for the WeCom message client.

This package contains:
- Configuration management
- Logging utilities
"""

from .config import (
    DEFAULT_TOKEN_CACHE_PATH,
    MAX_TOKEN_REFRESH_INTERVAL,
    LoggingConfig,
    MessageDefaults,
    WeComConfig,
)
from .logger import get_logger, setup_logging

__all__ = [
    "DEFAULT_TOKEN_CACHE_PATH",
    "MAX_TOKEN_REFRESH_INTERVAL",
    "LoggingConfig",
    "MessageDefaults",
    "WeComConfig",
    "get_logger",
    "setup_logging",
]
