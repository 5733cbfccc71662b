"""
Load and merge nanobrain configuration files.

Config hierarchy (later layers win):
    built-in defaults          NanobrainConfig()
    ~/.nanobrain/config.yaml   Global settings
    <memory_dir>/config.yaml   Per-memory-directory overrides
    NANOBRAIN_MEMORY_DIR       Environment override for the memory directory
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from nanobrain.config.models import NanobrainConfig
from nanobrain.errors import InvalidInputError

logger = logging.getLogger(__name__)

NANOBRAIN_HOME = Path.home() / ".nanobrain"
GLOBAL_CONFIG_PATH = NANOBRAIN_HOME / "config.yaml"
CONFIG_FILENAME = "config.yaml"
DEFAULT_MEMORY_DIR = NANOBRAIN_HOME / "memory"
MEMORY_DIR_ENV = "NANOBRAIN_MEMORY_DIR"


def load_config(
    memory_dir: Optional[Union[str, Path]] = None,
    global_config_path: Optional[Path] = None,
) -> NanobrainConfig:
    """Build the effective configuration.

    Args:
        memory_dir: Explicit memory directory. Wins over config files and env.
        global_config_path: Override for ~/.nanobrain/config.yaml (for testing).

    Raises InvalidInputError if the merged configuration fails validation.
    """
    merged: Dict[str, Any] = {}
    _deep_merge(merged, _read_yaml(global_config_path or GLOBAL_CONFIG_PATH))

    env_dir = os.environ.get(MEMORY_DIR_ENV)
    resolved_dir = Path(
        memory_dir or env_dir or merged.get("memory_dir") or DEFAULT_MEMORY_DIR
    ).expanduser()

    _deep_merge(merged, _read_yaml(resolved_dir / CONFIG_FILENAME))
    merged["memory_dir"] = str(resolved_dir)

    try:
        return NanobrainConfig.model_validate(merged)
    except ValidationError as e:
        raise InvalidInputError(f"Invalid nanobrain configuration:\n{e}") from e


def _read_yaml(path: Path) -> Dict[str, Any]:
    """Read one config layer. Missing or unreadable files yield {}."""
    if not path.is_file():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Could not read config at %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Config at %s is not a mapping - skipped", path)
        return {}
    return data


def _deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base
