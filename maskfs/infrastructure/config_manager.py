#!/usr/bin/env python3
"""Layered configuration for MaskFS.

Settings live under the ``maskfs`` section and come from five layers. A
higher layer wins key by key; a ``None`` value never hides a lower layer,
so unset command-line options fall through to the file or defaults.

Configuration is read once at startup. The mask built from it is never
reloaded while the server runs.

Example:
    >>> config = ConfigManager(config_file="maskfs.yaml")
    >>> config.get("maskfs.server.port")
    9888
    >>> config.get_mask_rules()
    '**/maskfs/\\n**/*.go'
"""

import copy
import os
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

import yaml

from maskfs.core.constants import DEFAULT_CONFIG, ConfigKey, ErrorCode
from maskfs.core.validators import ValidationError, validate_config

ROOT_KEY = "maskfs"
ENV_PREFIX = "MASKFS_"

_MASK_FILE_KEY = f"{ROOT_KEY}.{ConfigKey.MASK}.{ConfigKey.MASK_FILE}"
_MASK_RULES_KEY = f"{ROOT_KEY}.{ConfigKey.MASK}.{ConfigKey.MASK_RULES}"


class ConfigSource(Enum):
    """Configuration layers, lowest precedence first."""

    COMPILED_DEFAULTS = 1
    USER_CONFIG = 2  # YAML file
    ENVIRONMENT = 3  # MASKFS_SECTION_KEY variables
    CLI_ARGS = 4
    RUNTIME = 5


class ConfigError(Exception):
    """Configuration cannot be loaded or is invalid. Fatal at startup."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.INVALID_INPUT):
        self.message = message
        self.error_code = error_code
        super().__init__(message)


def _wrap(data: Dict[str, Any]) -> Dict[str, Any]:
    # Files and dicts may omit the top-level section
    return data if ROOT_KEY in data else {ROOT_KEY: data}


def _lookup(data: Dict[str, Any], key: str) -> Optional[Any]:
    node: Any = data
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def _merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        elif value is not None:
            merged[key] = value
    return merged


def parse_env_value(value: str) -> Any:
    """Coerce an environment string to int, float, bool, or leave it as str."""
    for convert in (int, float):
        try:
            return convert(value)
        except ValueError:
            pass

    lowered = value.lower()
    if lowered in ("true", "yes"):
        return True
    if lowered in ("false", "no"):
        return False
    return value


class ConfigManager:
    """Holds one dictionary per :class:`ConfigSource` and resolves keys across them.

    Keys are dotted paths such as ``maskfs.server.port``. Access is guarded
    by a lock, so the manager can be read from request threads.
    """

    def __init__(self, config_file: Optional[str] = None, environ: Optional[Mapping[str, str]] = None):
        """Load defaults, then the optional YAML file, then the environment.

        Args:
            config_file: YAML file for the USER_CONFIG layer
            environ: Variables for the ENVIRONMENT layer (default: ``os.environ``)

        Raises:
            ConfigError: If ``config_file`` cannot be loaded
        """
        self._lock = threading.RLock()
        self._layers: Dict[ConfigSource, Dict[str, Any]] = {
            ConfigSource.COMPILED_DEFAULTS: {ROOT_KEY: copy.deepcopy(DEFAULT_CONFIG)},
        }

        if config_file:
            self.load_file(config_file)

        self._load_environment(os.environ if environ is None else environ)

    def _descending(self) -> Iterator[Tuple[ConfigSource, Dict[str, Any]]]:
        for source in sorted(self._layers, key=lambda s: s.value, reverse=True):
            yield source, self._layers[source]

    def load_file(self, file_path: str, source: ConfigSource = ConfigSource.USER_CONFIG) -> None:
        """Replace a layer with the contents of a YAML file.

        Raises:
            ConfigError: If the file is missing, unreadable, not YAML, or not a mapping
        """
        path = Path(file_path).expanduser()
        if not path.is_file():
            raise ConfigError(f"Config file not found: {file_path}", ErrorCode.NOT_FOUND)

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"YAML parse error in {file_path}: {e}")
        except OSError as e:
            raise ConfigError(f"Cannot read config {file_path}: {e}", ErrorCode.PERMISSION_DENIED)

        if not isinstance(data, dict):
            raise ConfigError(f"Invalid config format in {file_path}: expected a mapping")

        with self._lock:
            self._layers[source] = _wrap(data)

    def load_dict(self, data: Dict[str, Any], source: ConfigSource = ConfigSource.RUNTIME) -> None:
        """Replace a layer with a copy of ``data``."""
        with self._lock:
            self._layers[source] = _wrap(copy.deepcopy(data))

    def _load_environment(self, environ: Mapping[str, str]) -> None:
        # MASKFS_SERVER_PORT=8080 -> maskfs.server.port = 8080
        section_values: Dict[str, Any] = {}
        for name, value in environ.items():
            if not name.startswith(ENV_PREFIX):
                continue
            section, _, key = name[len(ENV_PREFIX):].lower().partition("_")
            if section and key:
                section_values.setdefault(section, {})[key] = parse_env_value(value)

        if section_values:
            with self._lock:
                self._layers[ConfigSource.ENVIRONMENT] = {ROOT_KEY: section_values}

    def get(self, key: str, default: Any = None) -> Any:
        """Value of ``key`` from the highest layer that sets it, else ``default``."""
        with self._lock:
            for _, layer in self._descending():
                value = _lookup(layer, key)
                if value is not None:
                    return value
        return default

    def set(self, key: str, value: Any, source: ConfigSource = ConfigSource.RUNTIME) -> None:
        with self._lock:
            node = self._layers.setdefault(source, {})
            *parents, leaf = key.split(".")
            for part in parents:
                node = node.setdefault(part, {})
            node[leaf] = value

    def get_all(self) -> Dict[str, Any]:
        """All layers merged into one dictionary."""
        with self._lock:
            merged: Dict[str, Any] = {}
            for source in sorted(self._layers, key=lambda s: s.value):
                merged = _merge(merged, self._layers[source])
            return merged

    def validate(self) -> Dict[str, Any]:
        """Validate the merged ``maskfs`` section and return it.

        Raises:
            ConfigError: If any value is invalid
        """
        section = self.get_all().get(ROOT_KEY, {})
        try:
            validate_config(section)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}", e.error_code)
        return section

    def get_mask_rules(self) -> str:
        """Return the mask rule text.

        The highest layer that sets either a rules file or inline rules
        decides. Within one layer a rules file wins. An explicit empty
        string is kept, which hides everything.

        Raises:
            ConfigError: If the rules file cannot be read, or rules are not text
        """
        rules_file = rules = None
        with self._lock:
            for _, layer in self._descending():
                rules_file = _lookup(layer, _MASK_FILE_KEY)
                rules = _lookup(layer, _MASK_RULES_KEY)
                if rules_file or rules is not None:
                    break

        if rules_file:
            try:
                return Path(rules_file).expanduser().read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise ConfigError(f"Error reading mask file {rules_file}: {e}", ErrorCode.NOT_FOUND)

        if rules is None:
            return ""
        if not isinstance(rules, str):
            raise ConfigError(f"Mask rules must be a string, got {type(rules).__name__}")
        return rules
