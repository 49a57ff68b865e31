"""Domain entities - records and table schemas."""

from polystore.domain.entities.record import (
    Criteria,
    Record,
    merge_record,
    with_id,
    without_id,
)
from polystore.domain.entities.schema import (
    DEFAULT_SCHEMA,
    Column,
    ColumnType,
    SqlKeyword,
    TableSchema,
    is_valid_identifier,
)

__all__ = [
    "Criteria",
    "Record",
    "merge_record",
    "with_id",
    "without_id",
    "DEFAULT_SCHEMA",
    "Column",
    "ColumnType",
    "SqlKeyword",
    "TableSchema",
    "is_valid_identifier",
]
