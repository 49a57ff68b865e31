"""Record identifiers and loose identifier equality.

Engines disagree on identifier types: the snapshot and relational engines
generate integers, Firestore generates strings, and callers routinely pass
ids parsed from URLs as strings. Identifiers are therefore compared
through a single normalization, ``id_key``, so that ``7``, ``7.0``,
``"7"`` and ``"007"`` all address the same record. Stored values keep
whatever type the caller or the engine gave them.
"""

from __future__ import annotations

import re
from typing import Any, Union

RecordId = Union[int, str]
"""Identifier of a record within its table."""

ID_FIELD = "id"
"""Name of the identifier field carried by every record."""

_INTEGER_RE = re.compile(r"^\s*[+-]?\d+\s*$")


def numeric_id(value: Any) -> int | None:
    """Return the integer value of an identifier, or None if it has none.

    Examples:
        >>> numeric_id("12")
        12
        >>> numeric_id(3.0)
        3
        >>> numeric_id("abc") is None
        True
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str) and _INTEGER_RE.match(value):
        return int(value)
    return None


def id_key(value: Any) -> str:
    """Normalize an identifier to its canonical comparison key.

    Raises:
        TypeError: If the value cannot be an identifier (None, bool, containers).
    """
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise TypeError(f"Not a valid record identifier: {value!r}")

    number = numeric_id(value)
    if number is not None:
        return str(number)
    if isinstance(value, float):
        return repr(value)
    return value


def ids_equal(left: Any, right: Any) -> bool:
    """Loose identifier equality; values that are not identifiers never match."""
    try:
        return id_key(left) == id_key(right)
    except TypeError:
        return False


def is_supplied_id(value: Any) -> bool:
    """Whether a caller-provided id should be honoured rather than generated."""
    return value is not None and value != ""
