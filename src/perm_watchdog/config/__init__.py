"""Watchdog configuration: YAML loading and node validation."""
from __future__ import annotations

from perm_watchdog.config.fragment import NodeFragment, validate_tree
from perm_watchdog.config.loader import DEFAULT_CONFIG_NAME, ConfigLoader
from perm_watchdog.config.schema import RESERVED_KEYS, ModeSpec, NodeDirectives

__all__ = [
    "DEFAULT_CONFIG_NAME",
    "RESERVED_KEYS",
    "ConfigLoader",
    "ModeSpec",
    "NodeDirectives",
    "NodeFragment",
    "validate_tree",
]
