"""Frozen reference instant used for policy eligibility checks.

A :class:`ReferenceClock` is captured once at the start of a run and passed
to every eligibility check, so all nodes of one traversal agree on "now"
however long the walk takes.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone


@dataclass(frozen=True)
class ReferenceClock:
    """The instant a run is evaluated at.

    Attributes
    ----------
    instant:
        Timezone-aware "now".
    utc_offset:
        Local time-zone offset captured together with ``instant``.
    """

    instant: datetime
    utc_offset: timedelta = timedelta(0)

    def __post_init__(self) -> None:
        if self.instant.tzinfo is None:
            raise ValueError("ReferenceClock.instant must be timezone-aware.")

    @classmethod
    def freeze(cls, instant: datetime | None = None) -> ReferenceClock:
        """Capture the current instant (or *instant*) with the local offset.

        Naive datetimes are interpreted as local time.
        """
        local = (instant or datetime.now()).astimezone()
        return cls(
            instant=local.astimezone(timezone.utc),
            utc_offset=local.utcoffset() or timedelta(0),
        )
