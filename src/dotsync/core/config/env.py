"""Environment loading helpers.

dotsync reads DOTSYNC_* variables (see loader.apply_env_overrides). They can
come from the process environment or from .env files:

  os.environ (pre-existing) > source-tree .env > user .env

A .env file never overrides a variable that is already exported, so
scheduler- or shell-provided settings always win.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

from dotenv import dotenv_values


def _read_env(path: Path) -> dict[str, str]:
    if not path.exists():
        return {}
    values = dotenv_values(path)
    out: dict[str, str] = {}
    for k, v in values.items():
        if k is None or v is None:
            continue
        out[str(k)] = str(v)
    return out


def load_layered_env(
    *,
    source_dir: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
    project_env_paths: Iterable[Path] | None = None,
) -> None:
    """Load environment variables from user + source-tree .env files.

    Args:
        source_dir: base directory for project env paths (skipped when None)
        user_env_paths: explicit user env file paths
        project_env_paths: explicit project env file paths

    Notes:
        Keys set from the user env may be overridden by the project env,
        but neither overrides pre-existing OS environment.
    """
    if user_env_paths is None:
        xdg_home = Path(os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config")))
        user_env_paths = [xdg_home / "dotsync" / ".env"]

    if project_env_paths is None:
        project_env_paths = [source_dir / ".env.dotsync"] if source_dir is not None else []

    user_set_keys: set[str] = set()
    for p in user_env_paths:
        for k, v in _read_env(Path(p)).items():
            if k not in os.environ:
                os.environ[k] = v
                user_set_keys.add(k)

    for p in project_env_paths:
        for k, v in _read_env(Path(p)).items():
            if k not in os.environ or k in user_set_keys:
                os.environ[k] = v
