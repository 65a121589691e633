"""Logging and configuration helpers."""

from logstore.utils.config import Config, get_config, reset_config
from logstore.utils.logging import configure_logging, get_logger

__all__ = [
    "Config",
    "get_config",
    "reset_config",
    "configure_logging",
    "get_logger",
]
