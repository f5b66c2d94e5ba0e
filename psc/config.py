"""psc Configuration — project-level .pscrc.json support.

Loads default compiler flags from .pscrc.json (or psc.config.json) in the
project root, so a project does not have to repeat them on every
invocation. Command-line flags always take precedence.

Example .pscrc.json:
    {
      "browser_namespace": "App",
      "no_prefix": true,
      "main": "Main",
      "modules": ["Main"],
      "output": "dist/app.js",
      "externs": "dist/app.e.purs"
    }
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from psc.errors import PscError
from psc.options import DEFAULT_BROWSER_NAMESPACE

logger = logging.getLogger(__name__)


class ConfigError(PscError):
    """A configuration file exists but cannot be used."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Invalid configuration file {path}: {reason}")


@dataclass
class ProjectConfig:
    """Project-level psc configuration."""
    no_prelude: bool = False
    no_tco: bool = False
    no_magic_do: bool = False
    no_opts: bool = False
    verbose_errors: bool = False
    no_prefix: bool = False
    main: Optional[str] = None
    browser_namespace: str = DEFAULT_BROWSER_NAMESPACE
    modules: List[str] = field(default_factory=list)
    codegen: List[str] = field(default_factory=list)
    output: Optional[str] = None
    externs: Optional[str] = None
    path: Optional[str] = None


# ---------------------------------------------------------------------------
# Config file names (in priority order)
# ---------------------------------------------------------------------------

_CONFIG_FILES = [
    ".pscrc.json",
    "psc.config.json",
]

_BOOL_KEYS = ("no_prelude", "no_tco", "no_magic_do", "no_opts", "verbose_errors", "no_prefix")
_STRING_KEYS = ("main", "browser_namespace", "output", "externs")
_LIST_KEYS = ("modules", "codegen")


def find_config(start_dir: str = ".") -> Optional[str]:
    """Find the nearest config file by walking up from start_dir."""
    current = os.path.abspath(start_dir)
    while True:
        for name in _CONFIG_FILES:
            path = os.path.join(current, name)
            if os.path.isfile(path):
                return path
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent
    return None


def load_config(path: Optional[str] = None, start_dir: str = ".") -> ProjectConfig:
    """Load configuration from a file.

    If no path is given, searches for a config file starting from start_dir.
    If no config file is found, returns defaults.
    """
    if path is None:
        path = find_config(start_dir)

    if path is None:
        return ProjectConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(path, e.strerror or str(e)) from e
    except json.JSONDecodeError as e:
        raise ConfigError(path, str(e)) from e

    if not isinstance(data, dict):
        raise ConfigError(path, "expected a JSON object")

    config = _dict_to_config(data, path)
    logger.debug("loaded configuration from %s", path)
    return config


def _dict_to_config(data: Dict[str, Any], path: str) -> ProjectConfig:
    """Convert a parsed dict to ProjectConfig."""
    config = ProjectConfig(path=path)

    for key in _BOOL_KEYS:
        if key in data:
            if not isinstance(data[key], bool):
                raise ConfigError(path, f"'{key}' must be true or false")
            setattr(config, key, data[key])
    for key in _STRING_KEYS:
        if key in data and data[key] is not None:
            if not isinstance(data[key], str):
                raise ConfigError(path, f"'{key}' must be a string")
            setattr(config, key, data[key])
    for key in _LIST_KEYS:
        if key in data:
            value = data[key]
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ConfigError(path, f"'{key}' must be a list of module names")
            setattr(config, key, list(value))

    unknown = sorted(set(data) - set(_BOOL_KEYS) - set(_STRING_KEYS) - set(_LIST_KEYS))
    if unknown:
        logger.warning("ignoring unknown keys in %s: %s", path, ", ".join(unknown))
    return config
