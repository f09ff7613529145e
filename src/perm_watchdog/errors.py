"""Exception hierarchy for perm-watchdog.

Every failure raised by the package derives from :class:`WatchdogError` so
callers (and the CLI) can report any of them uniformly.  Each concrete
error also derives from the closest built-in exception, so code that only
knows about ``ValueError`` or ``FileNotFoundError`` keeps working.

None of these errors is recovered from internally: a run aborts on the
first one and nodes already updated stay updated.
"""
from __future__ import annotations


class WatchdogError(Exception):
    """Base class for all perm-watchdog errors."""


class InvalidExpression(WatchdogError, ValueError):
    """Raised when a mode expression cannot be compiled.

    Attributes
    ----------
    expression:
        The full expression that failed to compile.
    """

    def __init__(self, expression: str, message: str) -> None:
        self.expression = expression
        super().__init__(f"invalid file mode {expression!r}: {message}")


class UnknownGroup(WatchdogError, LookupError):
    """Raised when a configured group name has no group id on this host."""

    def __init__(self, group: str) -> None:
        self.group = group
        super().__init__(f"unknown group: {group!r}")


class PathUnavailable(WatchdogError, FileNotFoundError):
    """Raised when a managed path does not exist at stat/chmod/chown time."""

    def __init__(self, path: object) -> None:
        self.path = str(path)
        super().__init__(f"path not found: {self.path}")


class WatchdogConfigError(WatchdogError, ValueError):
    """Raised when a watchdog configuration document is malformed.

    Attributes
    ----------
    config_path:
        The path to the config file that caused the error, if known.
    """

    def __init__(self, message: str, config_path: str | None = None) -> None:
        self.config_path = config_path
        prefix = f"[{config_path}] " if config_path else ""
        super().__init__(f"{prefix}{message}")
