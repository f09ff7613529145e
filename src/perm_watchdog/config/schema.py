"""Pydantic v2 models for the reserved keys of a watchdog config node.

A node fragment is a mapping.  Four keys are reserved and validated here::

    mode: "u=rwX,go=rX"        # or {dir: "...", file: "..."}
    group: students
    exclude: ["*.bak", "private"]
    include: ["private/README"]

Every other key is either a dated policy (a YAML timestamp) or a child path
segment; those are handled by the tree itself.
"""
from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

RESERVED_KEYS: frozenset[str] = frozenset({"mode", "group", "exclude", "include"})


def _expression(value: object) -> object:
    # YAML 1.1 reads an unquoted 0755 as the octal integer 493.
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return f"{value:04o}"
    return value


class ModeSpec(BaseModel):
    """Directory and file mode expressions of a single policy."""

    model_config = {"extra": "forbid", "frozen": True}

    dir: str = Field(min_length=1)
    file: str = Field(min_length=1)

    @field_validator("dir", "file", mode="before")
    @classmethod
    def coerce_integer_modes(cls, value: object) -> object:
        return _expression(value)

    @classmethod
    def from_value(cls, value: object) -> ModeSpec:
        """Build from a bare expression or a ``{dir, file}`` mapping."""
        if isinstance(value, ModeSpec):
            return value
        if isinstance(value, dict):
            return cls.model_validate(value)
        expression = _expression(value)
        return cls.model_validate({"dir": expression, "file": expression})


class NodeDirectives(BaseModel):
    """The reserved keys of one config node, validated."""

    model_config = {"extra": "forbid", "frozen": True}

    mode: ModeSpec | None = Field(default=None)
    group: str | None = Field(default=None)
    exclude: list[str] = Field(default_factory=list)
    include: list[str] = Field(default_factory=list)

    @field_validator("mode", mode="before")
    @classmethod
    def expand_bare_expression(cls, value: object) -> object:
        if value is None or isinstance(value, (dict, ModeSpec)):
            return value
        expression = _expression(value)
        return {"dir": expression, "file": expression}

    @field_validator("exclude", "include", mode="before")
    @classmethod
    def listify_patterns(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value

    @classmethod
    def from_fragment(cls, fragment: dict[object, object]) -> NodeDirectives:
        """Validate the reserved keys present in *fragment*."""
        return cls.model_validate(
            {key: fragment[key] for key in RESERVED_KEYS if key in fragment}
        )
