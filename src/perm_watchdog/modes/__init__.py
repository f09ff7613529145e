"""Mode expression compilation.

Example
-------
::

    from perm_watchdog.modes import compile_mode

    assert compile_mode("a+X", 0o644, is_directory=True) == 0o755
"""
from __future__ import annotations

from perm_watchdog.modes.symbolic import MODE_BITS, compile_mode, format_mode

__all__ = [
    "MODE_BITS",
    "compile_mode",
    "format_mode",
]
