#!/usr/bin/env python3
"""Layered configuration for StageBackup.

Each source keeps its own nested mapping. A lookup asks the sources from
the highest precedence down and returns the first value found:

    RUNTIME > CLI_ARGS > ENVIRONMENT > USER_CONFIG > COMPILED_DEFAULTS

Environment variables use the ``STAGEBACKUP_`` prefix with ``_`` as the
nesting separator, so ``STAGEBACKUP_COMPRESSION_LEVEL=9`` sets
``compression.level``.

Example:
    >>> config = ConfigManager("~/.config/stagebackup.yaml")
    >>> config.get("compression.algorithm")
    'gzip'
"""

import copy
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

import yaml

from stagebackup.core.constants import DEFAULT_CONFIG, ErrorCode
from stagebackup.core.errors import BackupError

ENV_PREFIX = "STAGEBACKUP_"

_TRUE_WORDS = frozenset(("true", "yes", "on"))
_FALSE_WORDS = frozenset(("false", "no", "off"))


class ConfigSource(Enum):
    """Configuration sources, valued by precedence."""

    COMPILED_DEFAULTS = 1
    USER_CONFIG = 2
    ENVIRONMENT = 3
    CLI_ARGS = 4
    RUNTIME = 5


@dataclass
class ConfigValue:
    """A looked-up value and the source that supplied it."""

    value: Any
    source: ConfigSource
    timestamp: float = field(default_factory=time.time)


class ConfigError(BackupError):
    """Unreadable or mistyped configuration; a usage error."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.USAGE):
        super().__init__(message, error_code)


def parse_env_value(value: str) -> Any:
    """Interpret an environment string as bool, int, float or str."""
    word = value.strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    for convert in (int, float):
        try:
            return convert(value)
        except ValueError:
            continue
    return value


def _lookup(tree: Mapping[str, Any], dotted: str) -> Optional[Any]:
    node: Any = tree
    for part in dotted.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]
    return node


def _merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(merged.get(key), dict) and isinstance(value, Mapping):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigManager:
    """Precedence-ordered configuration sources with dotted-key access."""

    def __init__(
        self,
        config_file: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """Initialize configuration manager.

        Args:
            config_file: Optional YAML file loaded as the user config
            environ: Environment mapping (default: os.environ)

        Raises:
            ConfigError: If ``config_file`` cannot be loaded
        """
        self._sources: Dict[ConfigSource, Dict[str, Any]] = {
            ConfigSource.COMPILED_DEFAULTS: copy.deepcopy(DEFAULT_CONFIG)
        }
        if config_file:
            self.load_file(config_file)
        self._load_environment(os.environ if environ is None else environ)

    def _by_precedence(self, highest_first: bool = True) -> Iterator[Tuple[ConfigSource, Dict]]:
        order = sorted(self._sources, key=lambda s: s.value, reverse=highest_first)
        for source in order:
            yield source, self._sources[source]

    def load_file(self, file_path: str, source: ConfigSource = ConfigSource.USER_CONFIG) -> None:
        """Load a YAML mapping as one source.

        Raises:
            ConfigError: If the file is missing, unreadable, not YAML, or
                not a mapping
        """
        path = Path(file_path).expanduser()
        if not path.exists():
            raise ConfigError(f"Config file not found: {file_path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"YAML parse error in {file_path}: {e}")
        except OSError as e:
            raise ConfigError(f"Error loading config {file_path}: {e}")

        data = {} if data is None else data
        if not isinstance(data, dict):
            raise ConfigError(f"Invalid config format in {file_path}: expected a mapping")
        self._sources[source] = data

    def load_dict(
        self, config_data: Mapping[str, Any], source: ConfigSource = ConfigSource.RUNTIME
    ) -> None:
        """Replace one source with a copy of ``config_data``."""
        self._sources[source] = copy.deepcopy(dict(config_data))

    def _load_environment(self, environ: Mapping[str, str]) -> None:
        tree: Dict[str, Any] = {}
        for key, value in environ.items():
            if not key.startswith(ENV_PREFIX):
                continue
            *parents, leaf = key[len(ENV_PREFIX) :].lower().split("_")
            node = tree
            for part in parents:
                node = node.setdefault(part, {})
            node[leaf] = parse_env_value(value)

        if tree:
            self._sources[ConfigSource.ENVIRONMENT] = tree

    def get(self, key: str, default: Any = None) -> Any:
        """Value for a dotted key from the highest source defining it."""
        found = self.get_value(key)
        return default if found is None else found.value

    def get_value(self, key: str) -> Optional[ConfigValue]:
        """Like get(), but also report which source supplied the value."""
        for source, tree in self._by_precedence():
            value = _lookup(tree, key)
            if value is not None:
                return ConfigValue(value=value, source=source)
        return None

    def set(self, key: str, value: Any, source: ConfigSource = ConfigSource.RUNTIME) -> None:
        """Set a dotted key in one source, creating sections as needed."""
        *parents, leaf = key.split(".")
        node = self._sources.setdefault(source, {})
        for part in parents:
            node = node.setdefault(part, {})
        node[leaf] = value

    def get_all(self) -> Dict[str, Any]:
        """All sources deep-merged, higher precedence winning."""
        merged: Dict[str, Any] = {}
        for _, tree in self._by_precedence(highest_first=False):
            merged = _merge(merged, tree)
        return merged

    def validate_schema(self, schema: Mapping[str, Any]) -> bool:
        """Check merged values against a type schema.

        Args:
            schema: Key to type (or tuple of types), or to a nested schema

        Returns:
            True if every present value has the expected type

        Raises:
            ConfigError: On the first mistyped value
        """
        self._check(self.get_all(), schema, "")
        return True

    def _check(self, tree: Mapping[str, Any], schema: Mapping[str, Any], prefix: str) -> None:
        for key, expected in schema.items():
            value = tree.get(key)
            if value is None:
                continue

            dotted = prefix + key
            if isinstance(expected, Mapping):
                if not isinstance(value, Mapping):
                    raise ConfigError(f"Expected mapping for {dotted}, got {type(value).__name__}")
                self._check(value, expected, dotted + ".")
            elif not isinstance(value, expected):
                types = expected if isinstance(expected, tuple) else (expected,)
                names = "/".join(t.__name__ for t in types)
                raise ConfigError(f"Expected {names} for {dotted}, got {type(value).__name__}")

    def clear(self, source: Optional[ConfigSource] = None) -> None:
        """Drop one source, or every source but the compiled defaults."""
        targets = [source] if source else list(self._sources)
        for target in targets:
            if target is not ConfigSource.COMPILED_DEFAULTS:
                self._sources.pop(target, None)


CONFIG_SCHEMA = {
    "root": str,
    "lists": list,
    "outputs": list,
    "compression": {"algorithm": str, "level": int},
    "encryption": {"enabled": bool, "mode": str},
    "logging": {"level": str, "file": str},
}
