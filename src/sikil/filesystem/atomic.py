"""
Atomic filesystem operations with manual rollback.

Every mutation a command performs on skill directories goes through this
module, so rollback lives in one place:

- copy_directory_tree: all-or-nothing recursive copy, refuses symlinks,
  skips ``.git``.
- move_directory: rename, or copy + remove with the destination restored
  on failure.
- remove_directory: recursive delete behind an explicit confirmation flag.

Rollback failures are logged and otherwise ignored; a rollback of a
rollback is never attempted.
"""

import os
import shutil
import time
from pathlib import Path

import structlog

from ..core.errors import (
    AlreadyExists,
    ConfirmationRequired,
    DirectoryNotFound,
    NotADirectory,
    PermissionDenied,
    SikilError,
    SymlinkRejected,
    ValidationError,
)

logger = structlog.get_logger()

EXCLUDED_NAMES = frozenset({".git"})


def copy_directory_tree(src: Path, dest: Path) -> None:
    """Recursively copy ``src`` to ``dest``.

    ``dest`` must be absent or an empty directory. On any failure every
    file and directory created under ``dest``, and any parent directory
    created for it, is removed in reverse creation order before the error
    propagates.

    Raises:
        DirectoryNotFound: ``src`` does not exist
        NotADirectory: ``src`` is not a directory
        SymlinkRejected: ``src`` is, or contains, a symbolic link
        AlreadyExists: ``dest`` is a non-empty directory or a file
        PermissionDenied: any underlying I/O failure
    """
    src = Path(src)
    dest = Path(dest)

    if src.is_symlink():
        raise SymlinkRejected(f"source is a symlink: {src}")
    if not src.exists():
        raise DirectoryNotFound(src)
    if not src.is_dir():
        raise NotADirectory(src)

    if dest.is_symlink():
        raise SymlinkRejected(f"destination is a symlink: {dest}")
    if dest.exists():
        if not dest.is_dir():
            raise AlreadyExists(f"file at {dest}")
        if any(dest.iterdir()):
            raise AlreadyExists(f"non-empty directory at {dest}")

    created: list[Path] = []
    try:
        for parent in reversed(_missing_parents(dest)):
            _make_dir(parent, created)
        if not dest.exists():
            _make_dir(dest, created)
        _copy_children(src, dest, created)
    except Exception:
        _rollback(created)
        raise

    logger.debug("atomic.copied", src=str(src), dest=str(dest), entries=len(created))


def move_directory(src: Path, dest: Path) -> None:
    """Move ``src`` to ``dest``.

    Tries a single rename first. When that fails (typically across
    filesystems) it falls back to: set aside any existing ``dest``, copy,
    then remove ``src``. A failed copy restores the original ``dest``; a
    failed removal of ``src`` discards the new copy and restores ``dest``.

    Raises:
        DirectoryNotFound: ``src`` does not exist
        SikilError: whatever the fallback copy raised, after restoring
        PermissionDenied: the backup or the source removal failed
    """
    src = Path(src)
    dest = Path(dest)

    if not src.exists() and not src.is_symlink():
        raise DirectoryNotFound(src)

    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise PermissionDenied("create destination parent", dest.parent) from e

    if _try_rename(src, dest):
        logger.debug("atomic.moved", src=str(src), dest=str(dest), method="rename")
        return

    backup: Path | None = None
    if dest.exists() or dest.is_symlink():
        backup = _scratch_path(dest, "backup")
        try:
            os.rename(dest, backup)
        except OSError as e:
            raise PermissionDenied("back up destination", dest) from e

    try:
        copy_directory_tree(src, dest)
    except SikilError:
        _restore_backup(backup, dest)
        raise

    # Set the source aside first so a failure cannot leave it half-deleted.
    trash = _scratch_path(src, "trash")
    try:
        os.rename(src, trash)
    except OSError as e:
        _discard(dest)
        _restore_backup(backup, dest)
        raise PermissionDenied("remove source directory", src) from e

    _discard(trash)
    if backup is not None:
        _discard(backup)

    logger.debug("atomic.moved", src=str(src), dest=str(dest), method="copy")


def remove_directory(path: Path, confirmed: bool) -> None:
    """Recursively remove ``path``; refuses unless ``confirmed`` is True.

    Raises:
        ConfirmationRequired: ``confirmed`` is False
        SymlinkRejected: ``path`` is a symlink (unlink it instead)
        DirectoryNotFound: ``path`` does not exist
        NotADirectory: ``path`` is a file
        PermissionDenied: removal failed
    """
    path = Path(path)

    if not confirmed:
        raise ConfirmationRequired(f"remove directory {path}")
    if path.is_symlink():
        raise SymlinkRejected(f"refusing to remove through a symlink: {path}")
    if not path.exists():
        raise DirectoryNotFound(path)
    if not path.is_dir():
        raise NotADirectory(path)

    try:
        shutil.rmtree(path)
    except OSError as e:
        raise PermissionDenied("remove directory", path) from e

    logger.debug("atomic.removed", path=str(path))


def _copy_children(src_dir: Path, dest_dir: Path, created: list[Path]) -> None:
    try:
        with os.scandir(src_dir) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        raise PermissionDenied("read directory", src_dir) from e

    for entry in entries:
        if entry.name in EXCLUDED_NAMES:
            continue

        source = Path(entry.path)
        target = dest_dir / entry.name

        if entry.is_symlink():
            raise SymlinkRejected(f"symlink found in source at {source}")

        if entry.is_dir(follow_symlinks=False):
            _make_dir(target, created)
            _copy_children(source, target, created)
        elif entry.is_file(follow_symlinks=False):
            # Tracked before the copy: copy2 can fail after creating the file.
            created.append(target)
            try:
                shutil.copy2(source, target)
            except OSError as e:
                raise PermissionDenied("copy file", target) from e
        else:
            raise ValidationError(f"unsupported file type at {source}")


def _make_dir(path: Path, created: list[Path]) -> None:
    try:
        path.mkdir()
    except OSError as e:
        raise PermissionDenied("create directory", path) from e
    created.append(path)


def _rollback(created: list[Path]) -> None:
    for path in reversed(created):
        if not path.exists() and not path.is_symlink():
            continue
        try:
            if path.is_dir() and not path.is_symlink():
                path.rmdir()
            else:
                path.unlink()
        except OSError as e:
            logger.warning("atomic.rollback_failed", path=str(path), error=str(e))
    if created:
        logger.info("atomic.rolled_back", entries=len(created))


def _missing_parents(path: Path) -> list[Path]:
    """Ancestors of ``path`` that do not exist yet, nearest first."""
    missing: list[Path] = []
    parent = path.parent
    while parent != parent.parent and not parent.exists():
        missing.append(parent)
        parent = parent.parent
    return missing


def _try_rename(src: Path, dest: Path) -> bool:
    try:
        os.rename(src, dest)
    except OSError as e:
        logger.debug("atomic.rename_failed", src=str(src), dest=str(dest), error=str(e))
        return False
    return True


def _scratch_path(path: Path, purpose: str) -> Path:
    return path.with_name(f".{path.name}.sikil-{purpose}-{time.time_ns()}")


def _restore_backup(backup: Path | None, dest: Path) -> None:
    if backup is None:
        return
    if dest.exists() or dest.is_symlink():
        _discard(dest)
    try:
        os.rename(backup, dest)
    except OSError as e:
        logger.warning(
            "atomic.restore_failed", backup=str(backup), dest=str(dest), error=str(e)
        )


def _discard(path: Path) -> None:
    try:
        if path.is_symlink() or path.is_file():
            path.unlink()
        elif path.exists():
            shutil.rmtree(path)
    except OSError as e:
        logger.warning("atomic.cleanup_failed", path=str(path), error=str(e))
