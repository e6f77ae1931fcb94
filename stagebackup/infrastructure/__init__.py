"""StageBackup Infrastructure Layer.

Services used by the rule compiler, archive writer and pipeline:
- ConfigManager: Layered configuration (defaults, YAML file, environment, CLI)
- Logger: Structured logging to stderr or a rotating file
"""

from .config_manager import (
    CONFIG_SCHEMA,
    ConfigError,
    ConfigManager,
    ConfigSource,
    ConfigValue,
)
from .logger import Logger, LogLevel, get_logger, set_global_logger

__all__ = [
    "CONFIG_SCHEMA",
    "ConfigError",
    "ConfigManager",
    "ConfigSource",
    "ConfigValue",
    "Logger",
    "LogLevel",
    "get_logger",
    "set_global_logger",
]
