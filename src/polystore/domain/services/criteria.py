"""In-memory criteria matching for ``find_by`` / ``find_one``.

A criterion matches a record field when the values are strictly equal, or
when both are strings and the field contains the criterion as a
case-insensitive substring. The relaxation makes simple search work
(``{"name": "foo"}`` finds ``"Foobar"``) at the cost of over-matching
equality-looking queries on string fields.

Strict equality follows the stored JSON types: ``1 == 1.0`` matches,
``True`` never matches ``1``, and a missing field never matches, not
even a ``None`` criterion.
"""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Mapping

_MISSING = object()


def _strictly_equal(candidate: Any, expected: Any) -> bool:
    if isinstance(candidate, bool) or isinstance(expected, bool):
        return type(candidate) is type(expected) and candidate == expected
    if isinstance(candidate, (int, float)) and isinstance(expected, (int, float)):
        return candidate == expected
    return type(candidate) is type(expected) and candidate == expected


def field_matches(candidate: Any, expected: Any) -> bool:
    """Match one record field against one criterion value."""
    if candidate is _MISSING:
        return False
    if _strictly_equal(candidate, expected):
        return True
    if isinstance(candidate, str) and isinstance(expected, str):
        return expected.lower() in candidate.lower()
    return False


def matches_criteria(record: Mapping[str, Any], criteria: Mapping[str, Any]) -> bool:
    """Whether every criterion matches. Empty criteria match everything."""
    return all(
        field_matches(record.get(key, _MISSING), expected)
        for key, expected in criteria.items()
    )


def filter_records(
    records: Iterable[Mapping[str, Any]],
    criteria: Mapping[str, Any],
) -> Iterator[Mapping[str, Any]]:
    """Yield the records matching ``criteria``, in order."""
    for record in records:
        if matches_criteria(record, criteria):
            yield record
