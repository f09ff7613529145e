"""Tests for tree/node.py — PolicyTree against a real temporary directory."""
from __future__ import annotations

import os
import stat
from datetime import datetime, timezone
from pathlib import Path

import pytest

from perm_watchdog.errors import InvalidExpression, PathUnavailable
from perm_watchdog.policies.clock import ReferenceClock
from perm_watchdog.tree.node import PolicyTree


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

DEADLINE = datetime(2030, 6, 1, 12, 0)


def _clock(year: int) -> ReferenceClock:
    return ReferenceClock(instant=datetime(year, 1, 1, tzinfo=timezone.utc))


BEFORE = _clock(2029)
AFTER = _clock(2031)


def _mode(path: Path) -> int:
    return stat.S_IMODE(os.stat(path).st_mode)


@pytest.fixture()
def course(tmp_path: Path) -> Path:
    """A small course tree::

        root/
          handouts/intro.pdf
          submissions/alice/hw1.py
          submissions/bob/hw1.py
          submissions/bob/notes.txt
          README
    """
    root = tmp_path / "course"
    for directory in (
        "handouts",
        "submissions/alice",
        "submissions/bob",
    ):
        (root / directory).mkdir(parents=True)
    for name in (
        "handouts/intro.pdf",
        "submissions/alice/hw1.py",
        "submissions/bob/hw1.py",
        "submissions/bob/notes.txt",
        "README",
    ):
        (root / name).write_text("x", encoding="utf-8")

    for dirpath, dirnames, filenames in os.walk(root):
        os.chmod(dirpath, 0o755)
        for filename in filenames:
            os.chmod(os.path.join(dirpath, filename), 0o644)
    return root


# ---------------------------------------------------------------------------
# Construction and inheritance
# ---------------------------------------------------------------------------


class TestTreeConstruction:
    def test_declared_and_discovered_children_partition_entries(
        self, course: Path
    ) -> None:
        tree = PolicyTree({"handouts": {"mode": "0755"}}, course)
        declared = {c.full_path.name for c in tree.declared_children}
        discovered = {c.full_path.name for c in tree.discovered_children}
        assert declared == {"handouts"}
        assert discovered == {"submissions", "README"}
        assert declared.isdisjoint(discovered)

    def test_every_entry_represented_once(self, course: Path) -> None:
        tree = PolicyTree({"submissions": {"bob": {}}}, course)
        paths = [node.full_path for node in tree.walk()]
        assert len(paths) == len(set(paths))
        on_disk = {course, *course.rglob("*")}
        assert set(paths) == on_disk

    def test_declared_missing_path_still_a_node(self, course: Path) -> None:
        tree = PolicyTree({"ghost": {"mode": "0700"}}, course)
        assert course / "ghost" in {c.full_path for c in tree.declared_children}

    def test_parent_is_weak_back_reference(self, course: Path) -> None:
        tree = PolicyTree({}, course)
        child = tree.children[0]
        assert child.parent is tree
        assert tree.parent is None
        assert tree.is_root and not child.is_root

    def test_config_not_mutated(self, course: Path) -> None:
        config = {
            "mode": "0755",
            "group": "",
            "exclude": ["README"],
            DEADLINE: "0700",
            "handouts": {"mode": "0750"},
        }
        snapshot = {k: v for k, v in config.items()}
        PolicyTree(config, course)
        assert config == snapshot

    def test_relative_root_made_absolute(
        self, course: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(course.parent)
        tree = PolicyTree({}, "course")
        assert tree.full_path.resolve() == course.resolve()


class TestInheritance:
    def test_group_inherited(self, course: Path) -> None:
        tree = PolicyTree({"group": "staff", "submissions": {}}, course)
        submissions = _child(tree, "submissions")
        assert submissions.group == "staff"
        assert _child(submissions, "alice").group == "staff"

    def test_group_overridden(self, course: Path) -> None:
        tree = PolicyTree(
            {"group": "staff", "submissions": {"group": "students"}}, course
        )
        submissions = _child(tree, "submissions")
        assert submissions.group == "students"
        assert _child(submissions, "bob").group == "students"
        assert _child(tree, "handouts").group == "staff"

    def test_group_defaults_to_empty(self, course: Path) -> None:
        assert PolicyTree({}, course).group == ""

    def test_excludes_monotonic(self, course: Path) -> None:
        tree = PolicyTree(
            {"exclude": ["README"], "submissions": {"exclude": ["bob"]}}, course
        )
        for node in tree.walk():
            if node.parent is not None:
                assert node.exclude_paths >= node.parent.exclude_paths
                assert node.include_paths >= node.parent.include_paths
        submissions = _child(tree, "submissions")
        assert course / "README" in submissions.exclude_paths
        assert course / "submissions" / "bob" / "notes.txt" in submissions.exclude_paths

    def test_directory_exclude_covers_subtree(self, course: Path) -> None:
        tree = PolicyTree({"exclude": ["submissions"]}, course)
        assert tree.exclude_paths == {
            course / "submissions",
            course / "submissions" / "alice",
            course / "submissions" / "alice" / "hw1.py",
            course / "submissions" / "bob",
            course / "submissions" / "bob" / "hw1.py",
            course / "submissions" / "bob" / "notes.txt",
        }

    def test_wildcard_exclude(self, course: Path) -> None:
        tree = PolicyTree({"submissions": {"exclude": ["*/hw1.py"]}}, course)
        submissions = _child(tree, "submissions")
        assert submissions.exclude_paths == {
            course / "submissions" / "alice" / "hw1.py",
            course / "submissions" / "bob" / "hw1.py",
        }

    def test_unmatched_glob_adds_nothing(self, course: Path) -> None:
        tree = PolicyTree({"exclude": ["*.missing"]}, course)
        assert tree.exclude_paths == frozenset()

    def test_policies_extend_parent(self, course: Path) -> None:
        tree = PolicyTree(
            {"mode": "0755", DEADLINE: "0700", "handouts": {"mode": "0750"}}, course
        )
        handouts = _child(tree, "handouts")
        assert len(tree.policies) == 2
        assert len(handouts.policies) == 3
        assert set(tree.policies) <= set(handouts.policies)

    def test_own_default_is_minimum(self, course: Path) -> None:
        tree = PolicyTree({"mode": "0755", "handouts": {"mode": "0750"}}, course)
        handouts = _child(tree, "handouts")
        assert min(handouts.policies).dir_mode == "0750"


# ---------------------------------------------------------------------------
# Resolution and application
# ---------------------------------------------------------------------------


class TestEligibilityGate:
    CONFIG = {"mode": "0755", DEADLINE: "0700"}

    def test_before_deadline_default_applies(self, course: Path) -> None:
        PolicyTree(self.CONFIG, course).apply(BEFORE)
        for path in course.rglob("*"):
            assert _mode(path) == 0o755, path

    def test_after_deadline_latest_applies(self, course: Path) -> None:
        PolicyTree(self.CONFIG, course).apply(AFTER)
        for path in course.rglob("*"):
            assert _mode(path) == 0o700, path

    def test_root_never_modified(self, course: Path) -> None:
        os.chmod(course, 0o751)
        PolicyTree(self.CONFIG, course).apply(AFTER)
        assert _mode(course) == 0o751

    def test_only_latest_policy_consulted(self, course: Path) -> None:
        # The middle deadline has passed, but the latest has not: default wins.
        config = {
            "mode": "0755",
            datetime(2030, 1, 1): "0750",
            datetime(2032, 1, 1): "0700",
        }
        PolicyTree(config, course).apply(AFTER)
        assert _mode(course / "README") == 0o755


class TestExcludeInclude:
    CONFIG = {
        "mode": {"dir": "0755", "file": "0644"},
        DEADLINE: {"dir": "0700", "file": "0600"},
        "exclude": ["README", "handouts"],
        "include": ["handouts/intro.pdf"],
    }

    def test_excluded_path_keeps_default(self, course: Path) -> None:
        PolicyTree(self.CONFIG, course).apply(AFTER)
        assert _mode(course / "README") == 0o644

    def test_include_overrides_exclude(self, course: Path) -> None:
        PolicyTree(self.CONFIG, course).apply(AFTER)
        assert _mode(course / "handouts" / "intro.pdf") == 0o600

    def test_unlisted_path_follows_deadline(self, course: Path) -> None:
        PolicyTree(self.CONFIG, course).apply(AFTER)
        assert _mode(course / "submissions" / "bob" / "notes.txt") == 0o600

    def test_is_excluded_flag(self, course: Path) -> None:
        tree = PolicyTree(self.CONFIG, course)
        handouts = _child(tree, "handouts")
        assert handouts.is_excluded is True
        assert _child(handouts, "intro.pdf").is_excluded is False


class TestSymbolicApplication:
    def test_directory_and_file_expressions(self, course: Path) -> None:
        config = {
            "mode": "u=rwX,g=rX,o=",
            DEADLINE: {"dir": "u=rx,g=rx,o=", "file": "a-w"},
        }
        PolicyTree(config, course).apply(BEFORE)
        assert _mode(course / "submissions") == 0o750
        assert _mode(course / "submissions" / "bob" / "notes.txt") == 0o640

        PolicyTree(config, course).apply(AFTER)
        assert _mode(course / "submissions") == 0o550
        assert _mode(course / "submissions" / "bob" / "notes.txt") == 0o440

    def test_conditional_execute_keeps_scripts_executable(self, course: Path) -> None:
        script = course / "submissions" / "alice" / "hw1.py"
        os.chmod(script, 0o744)
        PolicyTree({"mode": "go=rX"}, course).apply(BEFORE)
        assert _mode(script) == 0o755
        assert _mode(course / "README") == 0o644

    def test_tree_completeness_uses_inherited_policy(self, course: Path) -> None:
        config = {"mode": {"dir": "0750", "file": "0640"}, "README": {"mode": "0600"}}
        PolicyTree(config, course).apply(BEFORE)
        assert _mode(course / "README") == 0o600
        assert _mode(course / "handouts" / "intro.pdf") == 0o640

    def test_no_policy_leaves_modes_alone(self, course: Path) -> None:
        report = PolicyTree({}, course).apply(BEFORE)
        assert report.changes == []
        assert _mode(course / "README") == 0o644


class TestIdempotence:
    CONFIG = {
        "mode": "u=rwX,g=rX,o=",
        DEADLINE: "a-w",
        "exclude": ["handouts"],
    }

    def test_second_run_makes_no_changes(self, course: Path) -> None:
        first = PolicyTree(self.CONFIG, course).apply(AFTER)
        second = PolicyTree(self.CONFIG, course).apply(AFTER)
        assert first.change_count > 0
        assert second.change_count == 0

    def test_reapplying_same_tree_is_noop(self, course: Path) -> None:
        tree = PolicyTree(self.CONFIG, course)
        tree.apply(BEFORE)
        assert tree.apply(BEFORE).changes == []


class TestApplyReport:
    def test_dry_run_changes_nothing(self, course: Path) -> None:
        report = PolicyTree({"mode": "0700"}, course).apply(BEFORE, dry_run=True)
        assert report.dry_run is True
        assert report.change_count == 9
        assert all(change.dry_run for change in report.changes)
        assert _mode(course / "README") == 0o644

    def test_visited_counts_every_node(self, course: Path) -> None:
        report = PolicyTree({}, course).apply(BEFORE)
        # 9 entries on disk plus the root itself.
        assert report.visited == 10

    def test_children_reported_before_parents(self, course: Path) -> None:
        report = PolicyTree({"mode": "0700"}, course).apply(BEFORE)
        order = [change.path for change in report.changes]
        assert order.index(course / "handouts" / "intro.pdf") < order.index(
            course / "handouts"
        )

    def test_change_records_old_and_new_mode(self, course: Path) -> None:
        report = PolicyTree({"README": {"mode": "0600"}}, course).apply(BEFORE)
        (change,) = report.changes
        assert change.path == course / "README"
        assert (change.old_mode, change.new_mode) == (0o644, 0o600)
        assert change.mode_changed and not change.group_changed


class TestSymlinks:
    @pytest.fixture()
    def outside(self, tmp_path: Path) -> Path:
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "secret.txt").write_text("s", encoding="utf-8")
        os.chmod(outside, 0o755)
        os.chmod(outside / "secret.txt", 0o644)
        return outside

    def test_file_link_target_untouched(self, course: Path, outside: Path) -> None:
        (course / "handouts" / "link").symlink_to(outside / "secret.txt")
        report = PolicyTree({"mode": "0777"}, course).apply(BEFORE)
        assert _mode(outside / "secret.txt") == 0o644
        assert course / "handouts" / "link" not in [c.path for c in report.changes]

    def test_directory_link_target_untouched(self, course: Path, outside: Path) -> None:
        (course / "handouts" / "elsewhere").symlink_to(outside)
        PolicyTree({"mode": {"dir": "0700", "file": "0600"}}, course).apply(BEFORE)
        assert _mode(outside) == 0o755
        assert _mode(outside / "secret.txt") == 0o644
        assert _mode(course / "handouts") == 0o700

    def test_links_do_not_break_idempotence(self, course: Path, outside: Path) -> None:
        (course / "README.link").symlink_to(outside / "secret.txt")
        tree = PolicyTree({"mode": "0640"}, course)
        tree.apply(BEFORE)
        assert tree.apply(BEFORE).changes == []


class TestErrors:
    def test_missing_declared_path_raises(self, course: Path) -> None:
        with pytest.raises(PathUnavailable):
            PolicyTree({"ghost": {"mode": "0700"}}, course).apply(BEFORE)

    def test_invalid_expression_aborts(self, course: Path) -> None:
        with pytest.raises(InvalidExpression):
            PolicyTree({"mode": "u+q"}, course).apply(BEFORE)


def _child(node: PolicyTree, name: str) -> PolicyTree:
    for child in node.children:
        if child.full_path.name == name:
            return child
    raise AssertionError(f"{name} not found under {node.full_path}")
