"""perm-watchdog — time-windowed, inheritable permission policies for directory trees.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import perm_watchdog as wd
>>> wd.__version__
'0.1.0'
>>> oct(wd.compile_mode("a+X", 0o744, is_directory=False))
'0o755'
"""
from __future__ import annotations

__version__: str = "0.1.0"

from perm_watchdog.errors import (
    InvalidExpression,
    PathUnavailable,
    UnknownGroup,
    WatchdogConfigError,
    WatchdogError,
)

# ---------------------------------------------------------------------------
# Modes
# ---------------------------------------------------------------------------
from perm_watchdog.modes.symbolic import compile_mode, format_mode

# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------
from perm_watchdog.policies.clock import ReferenceClock
from perm_watchdog.policies.policy import EPOCH, Policy

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
from perm_watchdog.config.loader import DEFAULT_CONFIG_NAME, ConfigLoader
from perm_watchdog.config.schema import ModeSpec, NodeDirectives

# ---------------------------------------------------------------------------
# Tree
# ---------------------------------------------------------------------------
from perm_watchdog.tree.filesystem import EntryStat, LocalFileSystem
from perm_watchdog.tree.node import PolicyTree
from perm_watchdog.tree.report import ApplyReport, Change

# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------
from perm_watchdog.audit.logger import AuditLogger

__all__ = [
    "__version__",
    # Errors
    "InvalidExpression",
    "PathUnavailable",
    "UnknownGroup",
    "WatchdogConfigError",
    "WatchdogError",
    # Modes
    "compile_mode",
    "format_mode",
    # Policies
    "EPOCH",
    "Policy",
    "ReferenceClock",
    # Configuration
    "DEFAULT_CONFIG_NAME",
    "ConfigLoader",
    "ModeSpec",
    "NodeDirectives",
    # Tree
    "ApplyReport",
    "Change",
    "EntryStat",
    "LocalFileSystem",
    "PolicyTree",
    # Audit
    "AuditLogger",
]
