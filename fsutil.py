"""
MacClean - Small filesystem helpers shared by the scanners and the UI.
"""

from __future__ import annotations

import os
from typing import List


def get_dir_size(path: str) -> int:
    """Recursively calculate directory size in bytes, handling permission errors."""
    total = 0
    try:
        for dirpath, _dirnames, filenames in os.walk(path):
            for f in filenames:
                fp = os.path.join(dirpath, f)
                try:
                    total += os.lstat(fp).st_size
                except (OSError, PermissionError):
                    pass
    except (OSError, PermissionError):
        pass
    return total


def get_file_size(path: str) -> int:
    """Get file size, returning 0 on error."""
    try:
        return os.lstat(path).st_size
    except (OSError, PermissionError):
        return 0


def get_size(path: str) -> int:
    if os.path.isdir(path) and not os.path.islink(path):
        return get_dir_size(path)
    return get_file_size(path)


def is_within(path: str, parent: str) -> bool:
    """True if `path` is `parent` itself or lies somewhere below it."""
    path = os.path.normpath(path)
    parent = os.path.normpath(parent)
    return path == parent or path.startswith(parent.rstrip(os.sep) + os.sep)


def list_entries(directory: str) -> List[os.DirEntry]:
    """Immediate entries of a directory, sorted by name; empty if unreadable."""
    try:
        with os.scandir(directory) as it:
            return sorted(it, key=lambda e: e.name)
    except (OSError, PermissionError):
        return []
