"""Time-windowed permission policy.

A :class:`Policy` pairs the instant it takes effect with the mode
expressions to apply to directories and to files.  Policies compare by
timestamp only, so ``min()``/``max()`` over a node's list yield the
default and the most recently dated policy.

Example
-------
>>> from datetime import datetime, timezone
>>> default = Policy.default("u=rwX,go=rX")
>>> deadline = Policy.from_value(datetime(2030, 6, 1), "a-w")
>>> max([default, deadline]) is deadline
True
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import TYPE_CHECKING

from perm_watchdog.config.schema import ModeSpec

if TYPE_CHECKING:
    from perm_watchdog.policies.clock import ReferenceClock

EPOCH: datetime = datetime(1970, 1, 1, tzinfo=timezone.utc)


def normalise_timestamp(value: date | datetime) -> datetime:
    """Return *value* as a timezone-aware datetime.

    Naive datetimes and plain dates are taken as UTC wall-clock values,
    which is how PyYAML reads timestamps without an explicit offset.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


@dataclass(frozen=True, order=True)
class Policy:
    """A mode rule that takes effect at ``timestamp``.

    Attributes
    ----------
    timestamp:
        Timezone-aware instant the policy becomes eligible.
    dir_mode:
        Mode expression applied to directories.
    file_mode:
        Mode expression applied to everything else.
    """

    timestamp: datetime
    dir_mode: str = field(compare=False)
    file_mode: str = field(compare=False)

    @classmethod
    def from_value(cls, timestamp: date | datetime, value: object) -> Policy:
        """Build a policy from a config value (expression or dir/file mapping)."""
        spec = ModeSpec.from_value(value)
        return cls(
            timestamp=normalise_timestamp(timestamp),
            dir_mode=spec.dir,
            file_mode=spec.file,
        )

    @classmethod
    def default(cls, value: object) -> Policy:
        """Build the always-eligible, epoch-dated policy for a ``mode`` key."""
        return cls.from_value(EPOCH, value)

    def is_eligible(self, clock: ReferenceClock) -> bool:
        """Return True once the policy's timestamp has passed.

        The captured local offset is subtracted from the timestamp before it
        is compared with the frozen instant.
        """
        return self.timestamp - clock.utc_offset <= clock.instant

    def mode_for(self, is_directory: bool) -> str:
        return self.dir_mode if is_directory else self.file_mode
