"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < source-tree config < env vars
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from .models import SyncConfig

logger = logging.getLogger(__name__)

# Global cache to avoid reloading config multiple times per process
_config_cache: SyncConfig | None = None

PROJECT_CONFIG_NAME = ".dotsync.json"


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """
    Get path to user configuration file.

    Returns:
        Path to ~/.config/dotsync/config.json (or XDG equivalent)
    """
    return get_xdg_config_home() / "dotsync" / "config.json"


def get_project_config_path(source_dir: Path) -> Path:
    """Path to the optional config file kept inside the source tree."""
    return source_dir / PROJECT_CONFIG_NAME


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`.
    Nested dicts are merged, not replaced.

    Example:
        >>> deep_merge({"a": 1, "b": {"x": 10}}, {"b": {"y": 30}})
        {'a': 1, 'b': {'x': 10, 'y': 30}}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON file, returning None if it doesn't exist or is invalid.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON as dict, or None if file doesn't exist or can't be parsed
    """
    if not path.exists():
        return None

    try:
        with path.open() as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            return None
    except (json.JSONDecodeError, OSError) as e:
        # Config system should be resilient
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None


def _set_nested(config_dict: dict[str, Any], section: str | None, key: str, value: Any) -> None:
    if section is None:
        config_dict[key] = value
        return
    # Rebuild the section so a caller's nested dict is never modified
    config_dict[section] = {**config_dict.get(section, {}), key: value}


def _parse_bool(raw: str) -> bool:
    return raw.lower() not in ("false", "0", "no", "")


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Env vars have the highest precedence and override all config files.

    Supported env vars:
        DOTSYNC_SOURCE_DIR - overrides paths.source_dir
        DOTSYNC_BACKUP_DIR - overrides paths.backup_dir
        DOTSYNC_MAIN_BRANCH - overrides git.main_branch
        DOTSYNC_MAX_RETRIES - overrides retry.max_attempts
        DOTSYNC_RETRY_DELAY - overrides retry.initial_delay
        DOTSYNC_REQUIRE_VERIFICATION - overrides require_verification
        DOTSYNC_MACHINE_ID - overrides machine_id

    Args:
        config_dict: Configuration dictionary to override

    Returns:
        Configuration dictionary with env var overrides applied
    """
    result = config_dict.copy()

    if source_dir := os.environ.get("DOTSYNC_SOURCE_DIR"):
        _set_nested(result, "paths", "source_dir", source_dir)

    if backup_dir := os.environ.get("DOTSYNC_BACKUP_DIR"):
        _set_nested(result, "paths", "backup_dir", backup_dir)

    if main_branch := os.environ.get("DOTSYNC_MAIN_BRANCH"):
        _set_nested(result, "git", "main_branch", main_branch)

    if retries_str := os.environ.get("DOTSYNC_MAX_RETRIES"):
        try:
            retries = int(retries_str)
            if retries < 1:
                logger.warning("DOTSYNC_MAX_RETRIES must be >= 1, got %d, ignoring", retries)
            else:
                _set_nested(result, "retry", "max_attempts", retries)
        except ValueError:
            logger.warning("Invalid DOTSYNC_MAX_RETRIES value '%s', ignoring", retries_str)

    if delay_str := os.environ.get("DOTSYNC_RETRY_DELAY"):
        try:
            delay = float(delay_str)
            if delay < 0:
                logger.warning("DOTSYNC_RETRY_DELAY must be >= 0, got %s, ignoring", delay_str)
            else:
                _set_nested(result, "retry", "initial_delay", delay)
        except ValueError:
            logger.warning("Invalid DOTSYNC_RETRY_DELAY value '%s', ignoring", delay_str)

    if verify_str := os.environ.get("DOTSYNC_REQUIRE_VERIFICATION"):
        _set_nested(result, None, "require_verification", _parse_bool(verify_str))

    if machine_id := os.environ.get("DOTSYNC_MACHINE_ID"):
        _set_nested(result, None, "machine_id", machine_id)

    return result


def load_config(
    source_dir: Path | None = None,
    use_cache: bool = True,
    user_config_path: Path | None = None,
) -> SyncConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (DOTSYNC_*)
        2. Source-tree config (<source_dir>/.dotsync.json)
        3. User config (~/.config/dotsync/config.json)
        4. Model defaults

    Args:
        source_dir: Source tree to read .dotsync.json from. Defaults to the
            source_dir resolved from the other layers.
        use_cache: If True, return cached config from previous load
        user_config_path: Explicit user config file (used by --config)

    Returns:
        Validated SyncConfig instance

    Raises:
        ValidationError: If the merged config fails Pydantic validation
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged: dict[str, Any] = {}

    if user_config := load_json_file(user_config_path or get_user_config_path()):
        merged = deep_merge(merged, user_config)

    # Env may move the source tree, so resolve it before looking for .dotsync.json
    explicit_source = source_dir is not None
    if source_dir is None:
        source_dir = SyncConfig(**apply_env_overrides(merged)).paths.source_dir

    if project_config := load_json_file(get_project_config_path(source_dir)):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)
    if explicit_source:
        _set_nested(merged, "paths", "source_dir", str(source_dir))

    config = SyncConfig(**merged)

    _config_cache = config
    return config


def clear_cache() -> None:
    """Clear the configuration cache (mainly for tests)."""
    global _config_cache
    _config_cache = None
