"""Table schemas for the relational engines.

The snapshot and document engines are schema-less. The relational engines
need declared tables; each table gets an implicit auto-increment integer
``id`` primary key followed by the declared columns. Column types are
abstract and rendered per SQL dialect.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def is_valid_identifier(name: Any) -> bool:
    """Whether ``name`` is safe to use as a SQL table or column name."""
    return isinstance(name, str) and bool(_IDENTIFIER_RE.match(name))


class ColumnType(Enum):
    """Abstract column types."""

    INTEGER = "integer"
    STRING = "string"  # short text, indexable (VARCHAR(255) on MySQL)
    TEXT = "text"
    REAL = "real"
    DECIMAL = "decimal"
    TIMESTAMP = "timestamp"

    @property
    def is_textual(self) -> bool:
        """Whether substring search applies to this type."""
        return self in (ColumnType.STRING, ColumnType.TEXT)


class SqlKeyword(Enum):
    """Column defaults that are SQL expressions rather than literals."""

    CURRENT_TIMESTAMP = "CURRENT_TIMESTAMP"


@dataclass(frozen=True)
class Column:
    """A declared column.

    Attributes:
        name: Column name.
        type: Abstract column type.
        nullable: Whether NULL is allowed.
        unique: Whether a UNIQUE constraint applies.
        default: Literal default (str, int, float) or a SqlKeyword.
    """

    name: str
    type: ColumnType
    nullable: bool = True
    unique: bool = False
    default: Any = None

    def __post_init__(self) -> None:
        if not is_valid_identifier(self.name):
            raise ValueError(f"Invalid column name: {self.name!r}")


@dataclass(frozen=True)
class TableSchema:
    """A declared table. The ``id`` column is implicit."""

    name: str
    columns: tuple[Column, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not is_valid_identifier(self.name):
            raise ValueError(f"Invalid table name: {self.name!r}")
        names = [column.name for column in self.columns]
        if "id" in names:
            raise ValueError(f"Table {self.name!r} declares 'id'; it is implicit")
        if len(set(names)) != len(names):
            raise ValueError(f"Table {self.name!r} declares a column twice")

    def column(self, name: str) -> Column | None:
        """Look up a declared column by name."""
        for column in self.columns:
            if column.name == name:
                return column
        return None


DEFAULT_SCHEMA: tuple[TableSchema, ...] = (
    TableSchema(
        "users",
        (
            Column("name", ColumnType.STRING, nullable=False),
            Column("email", ColumnType.STRING, nullable=False, unique=True),
            Column("password", ColumnType.STRING, nullable=False),
            Column("role", ColumnType.STRING, default="buyer"),
            Column("created_at", ColumnType.TIMESTAMP, default=SqlKeyword.CURRENT_TIMESTAMP),
        ),
    ),
    TableSchema(
        "products",
        (
            Column("name", ColumnType.STRING, nullable=False),
            Column("description", ColumnType.TEXT, nullable=False),
            Column("price", ColumnType.STRING, nullable=False),
            Column("original_price", ColumnType.STRING),
            Column("image_url", ColumnType.TEXT),
            Column("seller_id", ColumnType.INTEGER),
            Column("created_at", ColumnType.TIMESTAMP, default=SqlKeyword.CURRENT_TIMESTAMP),
        ),
    ),
    TableSchema(
        "orders",
        (
            Column("customer_name", ColumnType.STRING, nullable=False),
            Column("total", ColumnType.DECIMAL, nullable=False),
            Column("status", ColumnType.STRING, default="pending"),
            Column("order_date", ColumnType.TIMESTAMP, default=SqlKeyword.CURRENT_TIMESTAMP),
            Column("seller_id", ColumnType.INTEGER),
            Column("created_at", ColumnType.TIMESTAMP, default=SqlKeyword.CURRENT_TIMESTAMP),
        ),
    ),
)
"""Tables of the shop backend this layer was built for."""
