"""
Filesystem layer: atomic operations, symlink helpers and well-known paths.
"""

from .atomic import copy_directory_tree, move_directory, remove_directory
from .paths import expand_path, get_cache_path, get_config_path, get_repo_path, sikil_home
from .symlinks import (
    create_symlink,
    is_managed_symlink,
    is_symlink,
    read_symlink_target,
    remove_symlink,
    resolve_realpath,
)

__all__ = [
    "copy_directory_tree",
    "create_symlink",
    "expand_path",
    "get_cache_path",
    "get_config_path",
    "get_repo_path",
    "is_managed_symlink",
    "is_symlink",
    "move_directory",
    "read_symlink_target",
    "remove_directory",
    "remove_symlink",
    "resolve_realpath",
    "sikil_home",
]
