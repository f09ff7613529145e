"""Symbolic and numeric chmod mode compiler.

Turns a chmod-style mode expression into the absolute mode a target should
end up with, given its current mode and whether it is a directory.

Grammar
-------
::

    expression := octal | clause ("," clause)*
    octal      := [0-7]{1,4}
    clause     := who* (op perm*)+
    who        := "u" | "g" | "o" | "a"
    op         := "+" | "-" | "="
    perm       := "r" | "w" | "x" | "X" | "s" | "t" | "u" | "g" | "o"

``X`` grants execute/search only when the target is a directory or when the
mode as rewritten so far (not the on-disk mode) already carries an execute
bit.  It is re-evaluated for every clause.

``u``/``g``/``o`` on the permission side copy the referenced class's current
``rwx`` bits into the acting classes.  The copy is applied as an assignment
whatever the clause operator is; bits accumulated before the copy character
are applied first with the clause operator.

Example
-------
>>> oct(compile_mode("u+rwX,g=rX,o=", 0o644, is_directory=True))
'0o750'
>>> oct(compile_mode("g=u", 0o740, is_directory=False))
'0o770'
"""
from __future__ import annotations

import re

from perm_watchdog.errors import InvalidExpression

MODE_BITS: int = 0o7777

_OCTAL_RE = re.compile(r"^[0-7]{1,4}$")
_OPERATOR_RE = re.compile(r"([=+-])")

_WHO_MASKS: dict[str, int] = {
    "u": 0o4700,
    "g": 0o2070,
    "o": 0o1007,
    "a": 0o7777,
}

_PERM_MASKS: dict[str, int] = {
    "r": 0o444,
    "w": 0o222,
    "x": 0o111,
    "s": 0o6000,
    "t": 0o1000,
}

_ANY_EXECUTE: int = 0o111


def compile_mode(expression: str | int, current_mode: int, is_directory: bool) -> int:
    """Return the absolute mode produced by applying *expression*.

    Parameters
    ----------
    expression:
        A symbolic expression (``"u+rwX,go-w"``), an octal string
        (``"0750"``) or an integer mode.
    current_mode:
        The target's current mode.  Only the low ``07777`` bits are used.
    is_directory:
        Whether the target is a directory (drives ``X``).

    Returns
    -------
    int
        The new mode, restricted to ``07777``.

    Raises
    ------
    InvalidExpression
        If a clause has no operator or uses an unknown ``who`` or permission
        symbol.
    """
    if isinstance(expression, int):
        return expression & MODE_BITS

    text = str(expression).strip()
    if _OCTAL_RE.match(text):
        return int(text, 8)

    mode = current_mode & MODE_BITS
    for clause in text.split(","):
        mode = _apply_clause(text, clause, mode, is_directory)
    return mode & MODE_BITS


def format_mode(mode: int) -> str:
    """Return *mode* as a zero-padded four digit octal string, e.g. ``0755``."""
    return f"{mode & MODE_BITS:04o}"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _apply_clause(expression: str, clause: str, mode: int, is_directory: bool) -> int:
    """Fold a single ``who op perms [op perms ...]`` clause into *mode*."""
    target, *actions = _OPERATOR_RE.split(clause)
    if not actions:
        raise InvalidExpression(expression, f"clause {clause!r} has no operator")

    who_mask = _who_mask(expression, target or "a")

    for index in range(0, len(actions), 2):
        operator = actions[index]
        perms = actions[index + 1] if index + 1 < len(actions) else ""

        need_apply = operator == "="
        perm_mask = 0
        for char in perms:
            if char in _PERM_MASKS:
                perm_mask |= _PERM_MASKS[char]
            elif char == "X":
                if is_directory or mode & _ANY_EXECUTE:
                    perm_mask |= _ANY_EXECUTE
            elif char in "ugo":
                if perm_mask:
                    mode = _apply_mask(mode, who_mask, operator, perm_mask)
                copied = _copy_class(mode, char, who_mask)
                mode = _apply_mask(mode, who_mask, "=", copied)
                # "=" keeps the copied bits so later symbols add onto them.
                perm_mask = copied if operator == "=" else 0
                need_apply = False
            else:
                raise InvalidExpression(
                    expression, f"invalid permission symbol {char!r}"
                )

        if perm_mask or need_apply:
            mode = _apply_mask(mode, who_mask, operator, perm_mask)

    return mode


def _who_mask(expression: str, target: str) -> int:
    mask = 0
    for char in target:
        if char not in _WHO_MASKS:
            raise InvalidExpression(expression, f"invalid 'who' symbol {char!r}")
        mask |= _WHO_MASKS[char]
    return mask


def _copy_class(mode: int, source: str, who_mask: int) -> int:
    """Scale the rwx bits of class *source* into the classes of *who_mask*."""
    source_mask = _WHO_MASKS[source] & 0o777
    pattern = (mode & source_mask) // (source_mask & _ANY_EXECUTE)
    return pattern * (who_mask & _ANY_EXECUTE)


def _apply_mask(mode: int, who_mask: int, operator: str, perm_mask: int) -> int:
    match operator:
        case "=":
            return (mode & ~who_mask) | (who_mask & perm_mask)
        case "+":
            return mode | (who_mask & perm_mask)
        case "-":
            return mode & ~(who_mask & perm_mask)
    raise InvalidExpression(operator, f"unknown operator {operator!r}")
