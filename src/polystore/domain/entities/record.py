"""Records - the unit of persisted data.

A record is a plain mapping of field name to value with one identifier
field (``id``). The storage layer does not know entity shapes; typed
entities belong to the callers.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping

from polystore.domain.value_objects.identifiers import ID_FIELD, RecordId

Record = Dict[str, Any]
"""A persisted entity: field name -> scalar, list or nested mapping."""

Criteria = Mapping[str, Any]
"""Field name -> expected value, all of which must match."""


def merge_record(existing: Mapping[str, Any], partial: Mapping[str, Any]) -> Record:
    """Shallow merge of ``partial`` over ``existing``.

    Supplied fields replace fields of the same name, unspecified fields are
    kept. The identifier is immutable, so an ``id`` in ``partial`` is ignored.

    Example:
        >>> merge_record({"id": 1, "a": 1, "b": 2}, {"b": 3, "id": 9})
        {'id': 1, 'a': 1, 'b': 3}
    """
    merged = dict(existing)
    for key, value in partial.items():
        if key == ID_FIELD:
            continue
        merged[key] = value
    return merged


def without_id(data: Mapping[str, Any]) -> Record:
    """Copy of ``data`` without its identifier field."""
    return {key: value for key, value in data.items() if key != ID_FIELD}


def with_id(data: Mapping[str, Any], record_id: RecordId) -> Record:
    """Copy of ``data`` carrying ``record_id`` as its identifier."""
    return {**data, ID_FIELD: record_id}
