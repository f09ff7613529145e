"""Split a raw config node into directives, dated policies and children.

Keys are classified once, up-front, so a reserved key can never be mistaken
for a path segment:

- ``mode``/``group``/``exclude``/``include`` → :class:`NodeDirectives`
- ``datetime``/``date`` keys → dated mode specs
- ``str`` (or ``int``) keys → child path segments

The raw mapping is never modified.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping

from pydantic import ValidationError

from perm_watchdog.config.schema import RESERVED_KEYS, ModeSpec, NodeDirectives
from perm_watchdog.errors import WatchdogConfigError


@dataclass(frozen=True)
class NodeFragment:
    """A config node after key classification.

    Attributes
    ----------
    directives:
        Validated reserved keys.
    dated:
        ``(timestamp, ModeSpec)`` pairs in declaration order.
    children:
        Child path segment → that child's raw fragment.
    """

    directives: NodeDirectives = field(default_factory=NodeDirectives)
    dated: tuple[tuple[date, ModeSpec], ...] = ()
    children: dict[str, Mapping[Any, Any]] = field(default_factory=dict)

    @classmethod
    def parse(
        cls,
        raw: Mapping[Any, Any] | None,
        location: str = "<root>",
    ) -> NodeFragment:
        """Classify the keys of *raw*.

        Parameters
        ----------
        raw:
            The node's config mapping.  ``None`` is an empty node.
        location:
            Human-readable position of the node, used in error messages.

        Raises
        ------
        WatchdogConfigError
            If a reserved key is malformed, a key has an unsupported type,
            or a child segment is not a single path component.
        """
        if raw is None:
            return cls()
        if not isinstance(raw, Mapping):
            raise WatchdogConfigError(
                f"{location}: node must be a mapping, got {type(raw).__name__}"
            )

        try:
            directives = NodeDirectives.from_fragment(dict(raw))
        except ValidationError as exc:
            raise WatchdogConfigError(f"{location}: {exc}") from exc

        dated: list[tuple[date, ModeSpec]] = []
        children: dict[str, Mapping[Any, Any]] = {}
        for key, value in raw.items():
            if key in RESERVED_KEYS:
                continue
            # datetime is a subclass of date.
            if isinstance(key, date):
                try:
                    dated.append((key, ModeSpec.from_value(value)))
                except ValidationError as exc:
                    raise WatchdogConfigError(
                        f"{location}: policy dated {key}: {exc}"
                    ) from exc
            elif isinstance(key, (str, int)) and not isinstance(key, bool):
                children[_segment(key, location)] = _child(value, key, location)
            else:
                raise WatchdogConfigError(
                    f"{location}: unsupported key {key!r} ({type(key).__name__})"
                )

        return cls(directives=directives, dated=tuple(dated), children=children)


def _segment(key: str | int, location: str) -> str:
    segment = str(key)
    if not segment or segment in (".", "..") or os.sep in segment:
        raise WatchdogConfigError(
            f"{location}: {segment!r} is not a single path segment"
        )
    return segment


def _child(value: object, key: object, location: str) -> Mapping[Any, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise WatchdogConfigError(
            f"{location}/{key}: node must be a mapping, got {type(value).__name__}"
        )
    return value


def validate_tree(raw: Mapping[Any, Any] | None, location: str = "<root>") -> int:
    """Parse every node under *raw*; return the number of nodes.

    Raises
    ------
    WatchdogConfigError
        On the first malformed node.
    """
    fragment = NodeFragment.parse(raw, location)
    return 1 + sum(
        validate_tree(child, f"{location}/{segment}")
        for segment, child in fragment.children.items()
    )
