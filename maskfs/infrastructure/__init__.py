"""MaskFS Infrastructure Layer.

This layer provides services used by the higher layers:
- ConfigManager: Hierarchical configuration (defaults, YAML, environment, CLI)
- Logger: Structured logging system
"""

from .config_manager import ConfigError, ConfigManager, ConfigSource
from .logger import Logger, LogLevel, get_logger, set_global_logger

__all__ = [
    # Logger exports
    "Logger",
    "LogLevel",
    "get_logger",
    "set_global_logger",
    # ConfigManager exports
    "ConfigSource",
    "ConfigError",
    "ConfigManager",
]
