"""
Configuration loader with deep merge.

Precedence (lowest to highest):
1. Defaults (Pydantic schemas, including the default agent directories)
2. YAML file (~/.sikil/config.yaml unless another path is given)
3. Environment variables
4. CLI arguments

The merge is recursive so a file can override a single field of a single
agent and keep every other default.
"""

import os
from pathlib import Path
from typing import Any

import yaml

from ..core.errors import ConfigError, ConfigTooLarge
from ..filesystem.paths import get_config_path
from .schema import AppConfig, default_agents

MAX_CONFIG_SIZE = 1024 * 1024


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursive dictionary merge.

    Example:
        >>> deep_merge({"a": {"b": 1, "c": 2}, "d": 3}, {"a": {"b": 99}, "e": 4})
        {'a': {'b': 99, 'c': 2}, 'd': 3, 'e': 4}
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_yaml_config(config_path: Path | None, required: bool = True) -> dict[str, Any]:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML file, or None to skip
        required: If False, a missing file yields an empty dict

    Returns:
        Dictionary with the configuration, or empty dict if there is no file

    Raises:
        FileNotFoundError: the file is required and missing
        ConfigTooLarge: the file exceeds MAX_CONFIG_SIZE
        ConfigError: the file cannot be read or is not a YAML mapping
    """
    if not config_path:
        return {}

    if not config_path.exists():
        if required:
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        return {}

    size = config_path.stat().st_size
    if size > MAX_CONFIG_SIZE:
        raise ConfigTooLarge(size, MAX_CONFIG_SIZE)

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"failed to read {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a YAML mapping")
    return data


def load_env_overrides() -> dict[str, Any]:
    """Load overrides from environment variables.

    Supported variables:
        SIKIL_REPO_PATH: overrides repo_path
        SIKIL_LOG_LEVEL: overrides logging.level
        SIKIL_NO_CACHE: any non-empty value other than 0/false disables the cache

    SIKIL_HOME is read directly by sikil.filesystem.paths.
    """
    overrides: dict[str, Any] = {}

    if repo := os.environ.get("SIKIL_REPO_PATH"):
        overrides["repo_path"] = repo

    if log_level := os.environ.get("SIKIL_LOG_LEVEL"):
        overrides.setdefault("logging", {})["level"] = log_level.lower()

    no_cache = os.environ.get("SIKIL_NO_CACHE", "")
    if no_cache and no_cache.lower() not in ("0", "false", "no"):
        overrides.setdefault("cache", {})["enabled"] = False

    return overrides


def apply_cli_overrides(config_dict: dict[str, Any], cli_args: dict[str, Any]) -> dict[str, Any]:
    """Apply overrides from CLI arguments."""
    overrides: dict[str, Any] = {}

    if cli_args.get("no_cache"):
        overrides.setdefault("cache", {})["enabled"] = False

    if cli_args.get("log_file"):
        overrides.setdefault("logging", {})["file"] = cli_args["log_file"]

    if cli_args.get("verbose") is not None:
        overrides.setdefault("logging", {})["verbose"] = cli_args["verbose"]

    return deep_merge(config_dict, overrides)


def load_config(
    config_path: Path | None = None,
    cli_args: dict[str, Any] | None = None,
) -> AppConfig:
    """Load and validate the complete application configuration.

    Args:
        config_path: YAML file; when None the default location is used if it exists
        cli_args: Dictionary with CLI arguments

    Returns:
        Validated AppConfig

    Raises:
        FileNotFoundError: an explicit config_path does not exist
        ConfigError: the file is unreadable, oversized or not a mapping
        pydantic.ValidationError: the merged configuration is invalid
    """
    cli_args = cli_args or {}

    if config_path is None:
        yaml_config = load_yaml_config(get_config_path(), required=False)
    else:
        yaml_config = load_yaml_config(config_path)

    base = {
        "agents": {name: cfg.model_dump() for name, cfg in default_agents().items()}
    }
    merged = deep_merge(base, yaml_config)
    merged = deep_merge(merged, load_env_overrides())
    merged = apply_cli_overrides(merged, cli_args)

    return AppConfig(**merged)
