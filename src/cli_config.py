"""Settings loading for the CLI.

Precedence, highest first: CLI flags, ``PACKSMITH_*`` environment
variables, the settings file (``--config``, ``$PACKSMITH_CONFIG`` or
``~/.packsmith/config.yml``), built-in defaults.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import yaml

from constants import Constants
from errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings handed to every component."""

    catalog_dir: str = Constants.CATALOG_DIR
    docker_registry: str = Constants.DEFAULT_REGISTRY
    label_prefix: str = Constants.DEFAULT_LABEL_PREFIX
    script_timeout: Optional[float] = float(Constants.DEFAULT_SCRIPT_TIMEOUT_SEC)
    build_numbers_dir: str = Constants.BUILD_NUMBERS_DIR
    artifacts_dir: str = Constants.ARTIFACTS_DIR
    docker_binary: str = "docker"
    # buildpack name -> stack.yml style overrides
    buildpacks: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)


_STRING_KEYS = ("catalog_dir", "docker_registry", "label_prefix", "build_numbers_dir", "artifacts_dir",
                "docker_binary")


def _parse_timeout(value: Any, source: str) -> Optional[float]:
    """Seconds as a positive number; 0, empty or 'none' disables the deadline."""
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("", "none", "off"):
            return None
        value = text
    try:
        seconds = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"script_timeout from {source} must be a number, got {value!r}") from e
    if seconds < 0:
        raise ConfigError(f"script_timeout from {source} must not be negative, got {value!r}")
    return seconds or None


def _read_file(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            if path.endswith(".json"):
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"unable to read config file {path}: {e}", {"path": path}) from e
    except (ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"unable to parse config file {path}: {e}", {"path": path}) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping, got {type(data).__name__}", {"path": path})
    return data


def _from_mapping(data: Mapping[str, Any], source: str) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    known = {f.name for f in dataclasses.fields(Settings)}
    for key in sorted(set(data) - known):
        logger.warning("Ignoring unknown setting %r in %s", key, source)
    for key in _STRING_KEYS:
        if key in data and data[key] is not None:
            if not isinstance(data[key], str):
                raise ConfigError(f"{key} in {source} must be a string", {"key": key})
            values[key] = data[key]
    if "script_timeout" in data:
        values["script_timeout"] = _parse_timeout(data["script_timeout"], source)
    if "buildpacks" in data:
        packs = data["buildpacks"] or {}
        if not isinstance(packs, dict) or not all(isinstance(v, dict) for v in packs.values()):
            raise ConfigError(f"buildpacks in {source} must map buildpack names to mappings")
        values["buildpacks"] = packs
    return values


def _from_env(env: Mapping[str, str]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    if env.get(Constants.ENV_CATALOG_DIR):
        values["catalog_dir"] = env[Constants.ENV_CATALOG_DIR]
    if env.get(Constants.ENV_REGISTRY):
        values["docker_registry"] = env[Constants.ENV_REGISTRY]
    if Constants.ENV_SCRIPT_TIMEOUT in env:
        values["script_timeout"] = _parse_timeout(env[Constants.ENV_SCRIPT_TIMEOUT], "$" + Constants.ENV_SCRIPT_TIMEOUT)
    return values


def load_settings(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from file and environment.

    Args:
        path: Explicit settings file; must exist when given.
        env: Environment to read overrides from (defaults to os.environ).

    Raises:
        ConfigError: The file is missing, unreadable or has invalid values.
    """
    env = os.environ if env is None else env
    explicit = path or env.get(Constants.ENV_CONFIG)
    values: Dict[str, Any] = {}
    if explicit:
        explicit = os.path.expanduser(explicit)
        if not os.path.isfile(explicit):
            raise ConfigError(f"config file not found: {explicit}", {"path": explicit})
        values.update(_from_mapping(_read_file(explicit), explicit))
        logger.debug("Loaded settings from %s", explicit)
    else:
        default = os.path.expanduser(Constants.CONFIG_FILE)
        if os.path.isfile(default):
            values.update(_from_mapping(_read_file(default), default))
            logger.debug("Loaded settings from %s", default)
    values.update(_from_env(env))
    return Settings(**values)


def apply_cli_overrides(settings: Settings, args) -> Settings:
    """Apply CLI flags with highest precedence."""
    changes: Dict[str, Any] = {}
    if getattr(args, "CATALOG_DIR", None):
        changes["catalog_dir"] = args.CATALOG_DIR
    if getattr(args, "REGISTRY", None):
        changes["docker_registry"] = args.REGISTRY
    if getattr(args, "SCRIPT_TIMEOUT", None) is not None:
        changes["script_timeout"] = _parse_timeout(args.SCRIPT_TIMEOUT, "--script-timeout")
    return dataclasses.replace(settings, **changes) if changes else settings
