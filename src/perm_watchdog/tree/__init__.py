"""Policy-resolution tree and the filesystem primitives it drives."""
from __future__ import annotations

from perm_watchdog.tree.filesystem import (
    EntryStat,
    FileSystem,
    LocalFileSystem,
    absolute_path,
)
from perm_watchdog.tree.node import PolicyTree
from perm_watchdog.tree.report import ApplyReport, Change

__all__ = [
    "ApplyReport",
    "Change",
    "EntryStat",
    "FileSystem",
    "LocalFileSystem",
    "PolicyTree",
    "absolute_path",
]
