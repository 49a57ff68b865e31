"""Value objects - immutable identifiers and enumerations."""

from polystore.domain.value_objects.engine_kind import EngineKind
from polystore.domain.value_objects.identifiers import (
    ID_FIELD,
    RecordId,
    id_key,
    ids_equal,
    is_supplied_id,
    numeric_id,
)

__all__ = [
    "EngineKind",
    "ID_FIELD",
    "RecordId",
    "id_key",
    "ids_equal",
    "is_supplied_id",
    "numeric_id",
]
