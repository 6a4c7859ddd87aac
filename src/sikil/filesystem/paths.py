"""
Well-known locations.

Everything lives under ``~/.sikil`` unless ``SIKIL_HOME`` points elsewhere.
"""

import os
from pathlib import Path

HOME_ENV = "SIKIL_HOME"
DEFAULT_HOME = "~/.sikil"


def expand_path(path: str | Path) -> Path:
    """Expand ``~`` and environment variables. Does not resolve symlinks."""
    return Path(os.path.expandvars(os.path.expanduser(str(path))))


def sikil_home() -> Path:
    return expand_path(os.environ.get(HOME_ENV) or DEFAULT_HOME)


def get_repo_path() -> Path:
    return sikil_home() / "repo"


def get_config_path() -> Path:
    return sikil_home() / "config.yaml"


def get_cache_path() -> Path:
    return sikil_home() / "cache.json"


def ensure_dir_exists(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def is_within(path: Path, root: Path) -> bool:
    """True if ``path`` equals ``root`` or lies below it (lexically)."""
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True
