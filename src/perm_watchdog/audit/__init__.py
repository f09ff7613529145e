"""Audit trail of applied permission changes."""
from __future__ import annotations

from perm_watchdog.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
