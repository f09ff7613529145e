"""Time-windowed policies and the frozen reference clock."""
from __future__ import annotations

from perm_watchdog.policies.clock import ReferenceClock
from perm_watchdog.policies.policy import EPOCH, Policy, normalise_timestamp

__all__ = [
    "EPOCH",
    "Policy",
    "ReferenceClock",
    "normalise_timestamp",
]
