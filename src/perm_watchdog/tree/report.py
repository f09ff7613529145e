"""Records of the changes made (or planned) by a tree walk."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from perm_watchdog.modes import format_mode


@dataclass(frozen=True)
class Change:
    """A mode and/or group change on a single path.

    ``new_mode``/``new_gid`` equal the old values when only the other
    attribute changed.
    """

    path: Path
    old_mode: int
    new_mode: int
    old_gid: int
    new_gid: int
    group: str = ""
    dry_run: bool = False

    @property
    def mode_changed(self) -> bool:
        return self.old_mode != self.new_mode

    @property
    def group_changed(self) -> bool:
        return self.old_gid != self.new_gid

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation."""
        return {
            "event": "permission_change",
            "path": str(self.path),
            "old_mode": format_mode(self.old_mode),
            "new_mode": format_mode(self.new_mode),
            "old_gid": self.old_gid,
            "new_gid": self.new_gid,
            "group": self.group,
            "dry_run": self.dry_run,
        }


@dataclass
class ApplyReport:
    """Outcome of :meth:`PolicyTree.apply`."""

    changes: list[Change] = field(default_factory=list)
    visited: int = 0
    dry_run: bool = False

    @property
    def change_count(self) -> int:
        return len(self.changes)

    def summary(self) -> dict[str, object]:
        """Return a plain dict summarising the walk."""
        return {
            "visited": self.visited,
            "changes": self.change_count,
            "mode_changes": sum(1 for c in self.changes if c.mode_changed),
            "group_changes": sum(1 for c in self.changes if c.group_changed),
            "dry_run": self.dry_run,
        }
