"""
Configuration models and loading.

This module provides Pydantic models for dotsync configuration
with multi-layer merging: defaults < user < source tree < env vars.
"""

from .loader import (
    clear_cache,
    get_project_config_path,
    get_user_config_path,
    get_xdg_config_home,
    load_config,
)
from .models import (
    BackupConfig,
    GitConfig,
    LockConfig,
    PathsConfig,
    RetryConfig,
    SyncConfig,
)

__all__ = [
    # Models
    "BackupConfig",
    "GitConfig",
    "LockConfig",
    "PathsConfig",
    "RetryConfig",
    "SyncConfig",
    # Loader functions
    "clear_cache",
    "get_project_config_path",
    "get_user_config_path",
    "get_xdg_config_home",
    "load_config",
]
