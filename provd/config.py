"""Daemon configuration, read from a file and from the environment."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from provd.consts import DEFAULT_SOCKET_PATH

log = logging.getLogger(__name__)

_EXTENSIONS = ("yaml", "yml", "json")


class ConfigError(Exception):
    """Raised when the configuration cannot be loaded or decoded."""


@dataclass
class SystemPaths:
    """Filesystem locations used by the daemon."""

    socket: str = DEFAULT_SOCKET_PATH


@dataclass
class DaemonConfig:
    """Configuration parameters of the daemon."""

    paths: SystemPaths = field(default_factory=SystemPaths)


def _search_dirs(environ: Mapping[str, str]) -> list[Path]:
    dirs = [Path.cwd()]
    home = environ.get("HOME")
    if home:
        dirs.append(Path(home))
    dirs.append(Path("/etc/provd"))
    try:
        dirs.append(Path(sys.argv[0]).resolve().parent)
    except (IndexError, OSError) as exc:
        log.warning(
            "Failed to get current executable path, not adding it as a config dir: %s",
            exc,
        )
    return dirs


def _find_config(name: str, environ: Mapping[str, str]) -> Path | None:
    for directory in _search_dirs(environ):
        for ext in _EXTENSIONS:
            candidate = directory / f"{name}.{ext}"
            if candidate.is_file():
                return candidate
    return None


def _lower_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value


def _read_file(path: Path) -> dict:
    try:
        text = path.read_text()
        data = yaml.safe_load(text)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(
            f"can't load configuration: invalid configuration file: {exc}"
        ) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"can't load configuration: invalid configuration file: {path} "
            "does not hold a mapping"
        )
    return _lower_keys(data)


def _set_nested(data: dict, keys: list[str], value: str) -> None:
    *parents, last = keys
    node = data
    for key in parents:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    node[last] = value


def _as_string(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ConfigError(
        f"unable to decode configuration into struct: expected a string, got {value!r}"
    )


def _decode(data: dict) -> DaemonConfig:
    paths = data.get("paths")
    if paths is None:
        paths = {}
    if not isinstance(paths, dict):
        raise ConfigError(
            f"unable to decode configuration into struct: 'paths' must be a mapping, got {paths!r}"
        )
    socket = paths.get("socket")
    if socket is None:
        return DaemonConfig()
    return DaemonConfig(paths=SystemPaths(socket=_as_string(socket)))


def load_config(
    name: str = "provd",
    config_file: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> DaemonConfig:
    """Load the configuration from a file, then override it from the environment.

    Without an explicit file, ``<name>.yaml`` is searched in the current
    directory, the home directory, ``/etc/<name>/`` and the executable's
    directory. Environment variables named ``<NAME>_SECTION_KEY`` override
    ``section.key``.
    """
    if environ is None:
        environ = os.environ

    data: dict = {}
    if config_file:
        data = _read_file(Path(config_file))
        log.info("Using configuration file: %s", config_file)
    else:
        found = _find_config(name, environ)
        if found is None:
            log.info(
                "No configuration file found.\n"
                "We will only use the defaults, env variables or flags."
            )
        else:
            data = _read_file(found)
            log.info("Using configuration file: %s", found)

    prefix = name.upper() + "_"
    for env_name, value in environ.items():
        if not env_name.startswith(prefix) or value == "":
            continue
        keys = env_name[len(prefix):].lower().split("_")
        if not all(keys):
            continue
        _set_nested(data, keys, value)

    return _decode(data)