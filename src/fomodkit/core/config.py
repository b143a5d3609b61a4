"""Layered configuration.

A key is looked up in each layer in turn and the first hit wins:

    cli            explicit arguments from the caller
    env            FOMODKIT_<SECTION>_<KEY>
    user_config    ~/.config/fomodkit/config.yaml
    system_config  /etc/fomodkit/config.yaml
    default        built-in values

Keys use dot notation (``paths.data_dir``). YAML files are read once, on
first use.
"""

from __future__ import annotations

import os
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from fomodkit.core.errors import ConfigError

LOGGING_LEVELS = ("quiet", "normal", "verbose", "debug")
DEFAULT_LOGGING_LEVEL = "normal"

ENV_PREFIX = "FOMODKIT_"

_BOOL_WORDS = {
    "1": True,
    "true": True,
    "yes": True,
    "on": True,
    "0": False,
    "false": False,
    "no": False,
    "off": False,
}


def _default_config() -> dict[str, Any]:
    home = Path.home() / ".fomodkit"
    return {
        "paths": {
            "data_dir": str(home / "data"),
            "packages_dir": str(home / "packages"),
            "install_log": str(home / "InstallLog.xml"),
        },
        "package": {"script_name": "fomod/script.cs"},
        "activation": {"remove_orphaned_files": True},
        "logging": {"level": DEFAULT_LOGGING_LEVEL, "color": True},
    }


def _lookup(tree: Mapping[str, Any], dotted: str) -> Any | None:
    node: Any = tree
    for part in dotted.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]
    return node


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    return loaded if isinstance(loaded, dict) else {}


@dataclass
class ConfigSource:
    value: Any
    source: str  # cli | env | user_config | system_config | default


@dataclass(frozen=True)
class LoggingPolicy:
    """Logging level plus the per-level switches it implies."""

    level_name: str
    emit_error: bool
    emit_warning: bool
    emit_info: bool
    emit_verbose: bool
    emit_debug: bool
    source: ConfigSource


class ConfigResolver:
    """Look up settings across the configuration layers.

        resolver = ConfigResolver(cli_args={"paths": {"data_dir": "/games/fo3/data"}})
        resolver.resolve("paths.data_dir")  # ("/games/fo3/data", "cli")
    """

    def __init__(
        self,
        cli_args: dict[str, Any] | None = None,
        user_config_path: Path | None = None,
        system_config_path: Path | None = None,
        defaults: dict[str, Any] | None = None,
    ) -> None:
        self.cli_args = cli_args or {}
        self.user_config_path = user_config_path or Path.home() / ".config/fomodkit/config.yaml"
        self.system_config_path = system_config_path or Path("/etc/fomodkit/config.yaml")
        self.defaults = _default_config() if defaults is None else defaults
        self._files: dict[str, dict[str, Any]] = {}

    def _file_layer(self, name: str, path: Path) -> dict[str, Any]:
        if name not in self._files:
            self._files[name] = _read_yaml(path)
        return self._files[name]

    def _layers(self, key: str) -> Iterator[tuple[str, Any]]:
        yield "cli", _lookup(self.cli_args, key)
        yield "env", os.environ.get(ENV_PREFIX + key.upper().replace(".", "_"))
        yield "user_config", _lookup(self._file_layer("user", self.user_config_path), key)
        yield "system_config", _lookup(self._file_layer("system", self.system_config_path), key)
        yield "default", _lookup(self.defaults, key)

    def resolve(self, key: str) -> tuple[Any, str]:
        """Return ``(value, source)`` for ``key``.

        Raises:
            ConfigError: No layer defines the key.
        """
        for source, value in self._layers(key):
            if value is not None:
                return value, source
        raise ConfigError(f"Config key '{key}' is not set")

    def resolve_str(self, key: str) -> str:
        value, _source = self.resolve(key)
        if not isinstance(value, str):
            raise ConfigError(f"'{key}' must be a string, not {type(value).__name__}")
        return value

    def resolve_path(self, key: str) -> Path:
        value, _source = self.resolve(key)
        if not isinstance(value, (str, Path)) or not str(value).strip():
            raise ConfigError(f"'{key}' must be a non-empty path, got {value!r}")
        return Path(value).expanduser()

    def resolve_bool(self, key: str) -> bool:
        """Booleans from YAML pass through; env strings like ``yes``/``off`` are mapped."""
        value, _source = self.resolve(key)
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in _BOOL_WORDS:
            return _BOOL_WORDS[value.strip().lower()]
        raise ConfigError(f"'{key}' must be a boolean, got {value!r}")

    def resolve_logging_level(self) -> str:
        return self._logging_source().value

    def resolve_logging_policy(self) -> LoggingPolicy:
        src = self._logging_source()
        rank = LOGGING_LEVELS.index(src.value)
        return LoggingPolicy(
            level_name=src.value,
            emit_error=True,
            emit_warning=True,
            emit_info=rank >= 1,
            emit_verbose=rank >= 2,
            emit_debug=rank >= 3,
            source=src,
        )

    def _logging_source(self) -> ConfigSource:
        """Resolve ``logging.level``, normalized to lower case.

        Raises:
            ConfigError: The level is not one of quiet, normal, verbose or debug.
        """
        try:
            raw, source = self.resolve("logging.level")
        except ConfigError:
            return ConfigSource(value=DEFAULT_LOGGING_LEVEL, source="default")

        level = raw.strip().lower() if isinstance(raw, str) else raw
        if level not in LOGGING_LEVELS:
            raise ConfigError(
                f"Unknown logging level {raw!r}",
                f"Use one of: {', '.join(LOGGING_LEVELS)}",
            )
        return ConfigSource(value=level, source=source)
