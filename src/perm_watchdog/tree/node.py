"""Policy-resolution tree.

A :class:`PolicyTree` node mirrors one path on disk.  Construction derives,
in this order and from the node's own fragment plus its parent's derived
values:

1. ``group``         — own ``group`` or the parent's, else ``""``
2. ``exclude_paths`` — parent's excludes plus own ``exclude`` globs
3. ``include_paths`` — parent's includes plus own ``include`` globs
4. ``policies``      — own ``mode`` default, parent's policies, own dated
                       policies
5. children          — declared path keys, then undeclared entries on disk

:meth:`PolicyTree.apply` walks children first and then fixes up the node
itself, so a directory is only tightened after everything under it has been
handled.  The root node is never modified.

Example
-------
::

    from perm_watchdog import ConfigLoader, PolicyTree

    config = ConfigLoader().load("/srv/course/_watchdog.yml")
    report = PolicyTree(config, "/srv/course").apply()
    print(report.summary())
"""
from __future__ import annotations

import logging
import weakref
from pathlib import Path
from typing import Any, Mapping

from perm_watchdog.config.fragment import NodeFragment
from perm_watchdog.modes import compile_mode, format_mode
from perm_watchdog.policies.clock import ReferenceClock
from perm_watchdog.policies.policy import Policy
from perm_watchdog.tree.filesystem import (
    EntryStat,
    FileSystem,
    LocalFileSystem,
    absolute_path,
)
from perm_watchdog.tree.report import ApplyReport, Change

logger = logging.getLogger(__name__)


class PolicyTree:
    """One node of the policy tree, bound to a path.

    Parameters
    ----------
    config:
        This node's config fragment (a mapping, or ``None`` for an empty
        fragment).  It is read, never modified.
    full_path:
        Filesystem path the node represents; made absolute.
    parent:
        Enclosing node, or ``None`` for the root.  Only a weak reference is
        kept.
    filesystem:
        OS primitives to use.  Defaults to the parent's, or
        :class:`LocalFileSystem` at the root.
    """

    def __init__(
        self,
        config: Mapping[Any, Any] | None,
        full_path: str | Path,
        parent: PolicyTree | None = None,
        filesystem: FileSystem | None = None,
    ) -> None:
        self._full_path = absolute_path(full_path)
        self._config = config if config is not None else {}
        self._parent_ref = weakref.ref(parent) if parent is not None else None
        self._fs: FileSystem = filesystem or (
            parent._fs if parent is not None else LocalFileSystem()
        )

        fragment = NodeFragment.parse(config, str(self._full_path))
        directives = fragment.directives

        self._group: str = self._derive_group(directives.group, parent)
        self._exclude_paths = self._derive_paths(
            directives.exclude, parent.exclude_paths if parent else frozenset()
        )
        self._include_paths = self._derive_paths(
            directives.include, parent.include_paths if parent else frozenset()
        )
        self._policies = self._derive_policies(fragment, parent)

        self._declared_children: tuple[PolicyTree, ...] = tuple(
            PolicyTree(child_config, self._full_path / segment, self)
            for segment, child_config in fragment.children.items()
        )
        self._discovered_children: tuple[PolicyTree, ...] = tuple(
            PolicyTree(None, self._full_path / name, self)
            for name in self._undeclared_entries(fragment.children)
        )

    # ------------------------------------------------------------------
    # Derived attributes
    # ------------------------------------------------------------------

    @property
    def full_path(self) -> Path:
        return self._full_path

    @property
    def config(self) -> Mapping[Any, Any]:
        return self._config

    @property
    def parent(self) -> PolicyTree | None:
        return self._parent_ref() if self._parent_ref is not None else None

    @property
    def is_root(self) -> bool:
        return self._parent_ref is None

    @property
    def group(self) -> str:
        return self._group

    @property
    def exclude_paths(self) -> frozenset[Path]:
        return self._exclude_paths

    @property
    def include_paths(self) -> frozenset[Path]:
        return self._include_paths

    @property
    def policies(self) -> tuple[Policy, ...]:
        return self._policies

    @property
    def declared_children(self) -> tuple[PolicyTree, ...]:
        return self._declared_children

    @property
    def discovered_children(self) -> tuple[PolicyTree, ...]:
        return self._discovered_children

    @property
    def children(self) -> tuple[PolicyTree, ...]:
        return self._declared_children + self._discovered_children

    @property
    def is_excluded(self) -> bool:
        """True when an exclude glob matches and no include glob does."""
        return (
            self._full_path in self._exclude_paths
            and self._full_path not in self._include_paths
        )

    def walk(self) -> list[PolicyTree]:
        """Return every node of this subtree, children before parents."""
        nodes: list[PolicyTree] = []
        for child in self.children:
            nodes.extend(child.walk())
        nodes.append(self)
        return nodes

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, clock: ReferenceClock) -> Policy | None:
        """Return the policy governing this node at *clock*.

        The latest-dated policy governs once it is eligible, unless the node
        is excluded; otherwise the earliest (default) policy does.  Returns
        ``None`` when no policy applies anywhere above this node.
        """
        if not self._policies:
            return None
        latest = max(self._policies)
        if self.is_excluded or not latest.is_eligible(clock):
            return min(self._policies)
        return latest

    def resolve_mode(self, clock: ReferenceClock, entry: EntryStat) -> int:
        """Return the mode this node should have, given its current *entry*."""
        policy = self.resolve(clock)
        if policy is None:
            return entry.mode
        expression = policy.mode_for(entry.is_directory)
        logger.debug(
            "%s: policy dated %s governs (excluded=%s) -> %r",
            self._full_path,
            policy.timestamp.isoformat(),
            self.is_excluded,
            expression,
        )
        return compile_mode(expression, entry.mode, entry.is_directory)

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------

    def apply(
        self,
        clock: ReferenceClock | None = None,
        dry_run: bool = False,
    ) -> ApplyReport:
        """Apply resolved modes and groups to the whole subtree.

        Parameters
        ----------
        clock:
            Frozen "now" for every eligibility check of this run.  Captured
            once here when omitted.
        dry_run:
            When ``True`` nothing is written; the report lists what would
            change.

        Returns
        -------
        ApplyReport

        Raises
        ------
        InvalidExpression, UnknownGroup, PathUnavailable, OSError
            On the first failure.  Nodes already updated stay updated.
        """
        clock = clock or ReferenceClock.freeze()
        report = ApplyReport(dry_run=dry_run)
        self._apply(clock, report)
        logger.info(
            "Applied policies under %s: %d nodes visited, %d changed%s",
            self._full_path,
            report.visited,
            report.change_count,
            " (dry run)" if dry_run else "",
        )
        return report

    def _apply(self, clock: ReferenceClock, report: ApplyReport) -> None:
        for child in self.children:
            child._apply(clock, report)

        report.visited += 1
        if self.is_root:
            return

        entry = self._fs.stat(self._full_path)
        # Linux has no lchmod; a link's own mode is meaningless.
        new_mode = entry.mode if entry.is_symlink else self.resolve_mode(clock, entry)
        new_gid = self._fs.group_id(self._group) if self._group else entry.gid

        if new_mode == entry.mode and new_gid == entry.gid:
            logger.debug("%s: already %s, unchanged", self._full_path, format_mode(new_mode))
            return

        # chown clears setuid/setgid on files, so the group goes first.
        if new_gid != entry.gid:
            logger.info("chgrp %s %s", self._group, self._full_path)
            if not report.dry_run:
                self._fs.chgrp(self._full_path, new_gid)
        if new_mode != entry.mode:
            logger.info("chmod %s %s", format_mode(new_mode), self._full_path)
            if not report.dry_run:
                self._fs.chmod(self._full_path, new_mode)

        report.changes.append(
            Change(
                path=self._full_path,
                old_mode=entry.mode,
                new_mode=new_mode,
                old_gid=entry.gid,
                new_gid=new_gid,
                group=self._group,
                dry_run=report.dry_run,
            )
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _derive_group(own: str | None, parent: PolicyTree | None) -> str:
        if own is not None:
            return own
        return parent.group if parent is not None else ""

    def _derive_paths(
        self,
        patterns: list[str],
        inherited: frozenset[Path],
    ) -> frozenset[Path]:
        expanded: set[Path] = set(inherited)
        for pattern in patterns:
            expanded |= self._fs.glob(self._full_path, pattern)
        return frozenset(expanded)

    @staticmethod
    def _derive_policies(
        fragment: NodeFragment,
        parent: PolicyTree | None,
    ) -> tuple[Policy, ...]:
        policies: list[Policy] = []
        # First in the list so min() prefers it over an inherited default.
        if fragment.directives.mode is not None:
            policies.append(Policy.default(fragment.directives.mode))
        if parent is not None:
            policies.extend(parent.policies)
        policies.extend(
            Policy.from_value(timestamp, spec) for timestamp, spec in fragment.dated
        )
        return tuple(policies)

    def _undeclared_entries(self, declared: Mapping[str, object]) -> list[str]:
        if not self._fs.is_directory(self._full_path):
            return []
        return [
            name
            for name in self._fs.list_directory(self._full_path)
            if name not in declared
        ]

    def __repr__(self) -> str:
        return (
            f"PolicyTree(path={str(self._full_path)!r}, group={self._group!r}, "
            f"policies={len(self._policies)}, children={len(self.children)})"
        )
