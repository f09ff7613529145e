"""Filesystem primitives consumed by the policy tree.

:class:`LocalFileSystem` wraps the ``os``/``grp``/``glob`` calls the tree
needs and maps missing paths and unknown groups onto the package's error
types.  Tests substitute their own :class:`FileSystem` subclass.
"""
from __future__ import annotations

import glob
import grp
import logging
import os
import stat
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from perm_watchdog.errors import PathUnavailable, UnknownGroup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntryStat:
    """The parts of ``stat()`` the tree cares about."""

    mode: int
    gid: int
    is_directory: bool
    is_symlink: bool = False


class FileSystem(ABC):
    """Abstract base for the OS primitives used by :class:`PolicyTree`."""

    @abstractmethod
    def stat(self, path: Path) -> EntryStat:
        """Return mode, gid and type of *path*; raise PathUnavailable if missing."""

    @abstractmethod
    def is_directory(self, path: Path) -> bool:
        """Return True if *path* is a directory the walk should descend into."""

    @abstractmethod
    def list_directory(self, path: Path) -> list[str]:
        """Return the entry names directly under *path*."""

    @abstractmethod
    def chmod(self, path: Path, mode: int) -> None:
        """Set the mode bits of *path*."""

    @abstractmethod
    def chgrp(self, path: Path, gid: int) -> None:
        """Set the group of *path*, leaving the owner unchanged."""

    @abstractmethod
    def group_id(self, group: str) -> int:
        """Return the gid of *group*; raise UnknownGroup if it does not exist."""

    @abstractmethod
    def glob(self, base: Path, pattern: str) -> set[Path]:
        """Expand *pattern* relative to *base* into absolute paths."""


class LocalFileSystem(FileSystem):
    """The real filesystem.

    Symbolic links are never followed: they are not descended into, their
    targets are never chmodded, and ``chgrp`` changes the link itself.
    """

    def stat(self, path: Path) -> EntryStat:
        try:
            st = os.lstat(path)
        except FileNotFoundError as exc:
            raise PathUnavailable(path) from exc
        return EntryStat(
            mode=st.st_mode & 0o7777,
            gid=st.st_gid,
            is_directory=stat.S_ISDIR(st.st_mode),
            is_symlink=stat.S_ISLNK(st.st_mode),
        )

    def is_directory(self, path: Path) -> bool:
        return path.is_dir() and not path.is_symlink()

    def list_directory(self, path: Path) -> list[str]:
        try:
            return sorted(os.listdir(path))
        except FileNotFoundError as exc:
            raise PathUnavailable(path) from exc

    def chmod(self, path: Path, mode: int) -> None:
        if path.is_symlink():
            logger.debug("not chmodding symlink %s", path)
            return
        try:
            os.chmod(path, mode)
        except FileNotFoundError as exc:
            raise PathUnavailable(path) from exc

    def chgrp(self, path: Path, gid: int) -> None:
        try:
            os.chown(path, -1, gid, follow_symlinks=False)
        except FileNotFoundError as exc:
            raise PathUnavailable(path) from exc

    def group_id(self, group: str) -> int:
        try:
            return grp.getgrnam(group).gr_gid
        except KeyError as exc:
            raise UnknownGroup(group) from exc

    def glob(self, base: Path, pattern: str) -> set[Path]:
        """Expand *pattern* relative to *base* into absolute paths.

        A pattern naming an existing directory expands to that directory and
        everything beneath it.
        """
        target = base / pattern
        if target.is_dir():
            matches = {target, *target.rglob("*")}
        else:
            matches = {Path(p) for p in glob.glob(str(target))}
        logger.debug("glob %s matched %d paths", target, len(matches))
        return {absolute_path(p) for p in matches}


def absolute_path(path: str | Path) -> Path:
    """Return an absolute, normalised path without resolving symlinks."""
    return Path(os.path.abspath(path))
