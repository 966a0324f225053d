"""TOG Configuration — project-level .togrc.yml support.

Loads configuration from .togrc.yml (or .togrc.yaml, .togrc.json,
tog.config.yml, tog.config.json), found by walking up from the working
directory. Every key is optional.

Example .togrc.yml:
    entry: main              # function called after top-level statements
    max_call_depth: 400      # deeper TOG recursion is a RuntimeError
    strict_types: false      # treat type checker findings as errors in `run`
    log_level: WARNING
    format: text             # "text" or "json" diagnostics
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml


class ConfigError(ValueError):
    """A config file exists but cannot be read or understood."""


@dataclass
class TogConfig:
    """Project-level TOG configuration."""
    entry: str = "main"
    max_call_depth: int = 400
    strict_types: bool = False
    log_level: str = "WARNING"
    # Diagnostics output: "text" or "json"
    format: str = "text"


# ---------------------------------------------------------------------------
# Config file names (in priority order)
# ---------------------------------------------------------------------------

_CONFIG_FILES = [
    ".togrc.yml",
    ".togrc.yaml",
    ".togrc.json",
    "tog.config.yml",
    "tog.config.json",
]

_FORMATS = ("text", "json")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


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


def load_config(path: Optional[str] = None, start_dir: str = ".") -> TogConfig:
    """Load configuration from a file.

    If no path is given, searches for a config file starting from start_dir.
    If no config file is found, returns defaults.
    """
    if path is None:
        path = find_config(start_dir)

    if path is None:
        return TogConfig()

    try:
        with open(path, "r") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    try:
        if path.endswith(".json"):
            data = json.loads(content) if content.strip() else {}
        else:
            data = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Malformed config file {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping, got {type(data).__name__}")

    return _dict_to_config(data, path)


def _dict_to_config(data: Dict[str, Any], source: str = "<config>") -> TogConfig:
    """Convert a parsed dict to TogConfig. Unknown keys are ignored."""
    config = TogConfig()

    try:
        if "entry" in data:
            config.entry = str(data["entry"])
        if "max_call_depth" in data:
            config.max_call_depth = int(data["max_call_depth"])
        if "strict_types" in data:
            config.strict_types = _to_bool(data["strict_types"])
        if "log_level" in data:
            config.log_level = str(data["log_level"]).upper()
        if "format" in data:
            config.format = str(data["format"]).lower()
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value in {source}: {e}") from e

    if config.max_call_depth < 1:
        raise ConfigError(f"max_call_depth must be positive in {source}")
    if config.format not in _FORMATS:
        raise ConfigError(f"format must be one of {', '.join(_FORMATS)} in {source}")
    if config.log_level not in _LOG_LEVELS:
        raise ConfigError(f"log_level must be one of {', '.join(_LOG_LEVELS)} in {source}")

    return config


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "on", "1"):
            return True
        if lowered in ("false", "no", "off", "0", ""):
            return False
        raise ValueError(f"not a boolean: {value!r}")
    return bool(value)
