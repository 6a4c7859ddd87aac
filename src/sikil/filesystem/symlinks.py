"""
Symlink helpers.

A managed installation is a symlink whose real path lies under the
repository root. These helpers never dereference more than needed to
answer that question.
"""

import os
from pathlib import Path

import structlog

from ..core.errors import SymlinkError
from .paths import is_within

logger = structlog.get_logger()


def is_symlink(path: Path) -> bool:
    """True for any symlink, including broken ones."""
    try:
        return path.is_symlink()
    except OSError:
        return False


def read_symlink_target(path: Path) -> Path:
    """Return the raw link text of ``path``."""
    if not is_symlink(path):
        raise SymlinkError(f"not a symlink: {path}")
    try:
        return Path(os.readlink(path))
    except OSError as e:
        raise SymlinkError(f"failed to read symlink: {path}") from e


def resolve_realpath(path: Path) -> Path:
    """Resolve every link in ``path``. Fails for missing or broken paths."""
    if not path.exists():
        raise SymlinkError(f"path does not exist: {path}")
    try:
        return path.resolve(strict=True)
    except (OSError, RuntimeError) as e:
        raise SymlinkError(f"failed to resolve real path: {path}") from e


def create_symlink(target: Path, link: Path) -> None:
    """Create ``link`` pointing at ``target``.

    An existing symlink or file at ``link`` is replaced; an existing real
    directory is refused.
    """
    try:
        link.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise SymlinkError(f"failed to create parent directory: {link.parent}") from e

    if is_symlink(link) or link.is_file():
        try:
            link.unlink()
        except OSError as e:
            raise SymlinkError(f"failed to remove existing entry: {link}") from e
    elif link.exists():
        raise SymlinkError(f"a directory already exists at {link}")

    try:
        os.symlink(target, link, target_is_directory=True)
    except OSError as e:
        raise SymlinkError(f"failed to create symlink from {link} to {target}") from e

    logger.debug("symlink.created", link=str(link), target=str(target))


def remove_symlink(link: Path) -> None:
    if not is_symlink(link):
        raise SymlinkError(f"not a symlink: {link}")
    try:
        link.unlink()
    except OSError as e:
        raise SymlinkError(f"failed to remove symlink: {link}") from e


def is_managed_symlink(path: Path, repo_root: Path) -> bool:
    """True if ``path`` is a symlink resolving under ``repo_root``."""
    if not is_symlink(path):
        return False
    try:
        real = resolve_realpath(path)
        root = repo_root.resolve()
    except (SymlinkError, OSError):
        return False
    return is_within(real, root)
