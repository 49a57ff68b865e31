"""SQL statement construction for the relational engines.

Statements are built from the caller's field names; values are always
bound parameters. Names are validated against a conservative identifier
pattern and quoted with the dialect's identifier quoting (via sqlglot),
so a field name can never smuggle SQL into a statement.

Criteria rendering:
    - string criterion on a textual column:
          LOWER(col) LIKE ? ESCAPE '!'   with  %<escaped lower value>%
      (case-insensitive substring, same semantics as the snapshot engine)
    - None:        col IS NULL
    - otherwise:   col = ?
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from sqlglot import exp

from polystore.domain.entities import ColumnType, SqlKeyword, TableSchema, is_valid_identifier
from polystore.domain.value_objects import ID_FIELD
from polystore.ports.inbound import InvalidIdentifierError

LIKE_ESCAPE = "!"


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so ``value`` matches literally."""
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def encode_value(value: Any) -> Any:
    """Encode a record value as a bind parameter; containers become JSON text."""
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value)
    return value


@dataclass(frozen=True)
class SqlDialect:
    """Rendering rules for one SQL engine.

    Attributes:
        name: sqlglot dialect name, used for identifier quoting.
        placeholder: Bind parameter marker of the driver.
        type_names: Abstract column type -> SQL type.
        id_column: DDL of the implicit auto-increment primary key (after the name).
        empty_insert: INSERT suffix used when no column is supplied.
    """

    name: str
    placeholder: str
    type_names: Mapping[ColumnType, str]
    id_column: str
    empty_insert: str

    def quote(self, identifier: str) -> str:
        """Validate and quote a table or column name.

        Raises:
            InvalidIdentifierError: If the name is not a plain identifier.
        """
        if not is_valid_identifier(identifier):
            raise InvalidIdentifierError(f"Invalid SQL identifier: {identifier!r}")
        return exp.to_identifier(identifier, quoted=True).sql(dialect=self.name)

    # -------------------------------------------------------------------------
    # DDL
    # -------------------------------------------------------------------------

    def create_table(self, schema: TableSchema) -> str:
        """CREATE TABLE IF NOT EXISTS for a declared table."""
        definitions = [f"{self.quote(ID_FIELD)} {self.id_column}"]
        for column in schema.columns:
            parts = [self.quote(column.name), self.type_names[column.type]]
            if not column.nullable:
                parts.append("NOT NULL")
            if column.unique:
                parts.append("UNIQUE")
            if column.default is not None:
                parts.append(f"DEFAULT {self._literal(column.default)}")
            definitions.append(" ".join(parts))

        return f"CREATE TABLE IF NOT EXISTS {self.quote(schema.name)} ({', '.join(definitions)})"

    @staticmethod
    def _literal(value: Any) -> str:
        if isinstance(value, SqlKeyword):
            return value.value
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, (int, float)):
            return repr(value)
        return "'" + str(value).replace("'", "''") + "'"

    # -------------------------------------------------------------------------
    # DML
    # -------------------------------------------------------------------------

    def select_all(self, table: str) -> str:
        return f"SELECT * FROM {self.quote(table)}"

    def select_by_id(self, table: str) -> str:
        return f"{self.select_all(table)} WHERE {self.quote(ID_FIELD)} = {self.placeholder}"

    def insert(self, table: str, columns: Sequence[str]) -> str:
        if not columns:
            return f"INSERT INTO {self.quote(table)} {self.empty_insert}"
        names = ", ".join(self.quote(column) for column in columns)
        markers = ", ".join(self.placeholder for _ in columns)
        return f"INSERT INTO {self.quote(table)} ({names}) VALUES ({markers})"

    def update(self, table: str, columns: Sequence[str]) -> str:
        assignments = ", ".join(f"{self.quote(column)} = {self.placeholder}" for column in columns)
        return (
            f"UPDATE {self.quote(table)} SET {assignments} "
            f"WHERE {self.quote(ID_FIELD)} = {self.placeholder}"
        )

    def delete(self, table: str) -> str:
        return f"DELETE FROM {self.quote(table)} WHERE {self.quote(ID_FIELD)} = {self.placeholder}"

    def select_where(
        self,
        schema: TableSchema,
        criteria: Mapping[str, Any],
        limit: int | None = None,
    ) -> tuple[str, list[Any]]:
        """SELECT matching every criterion.

        Returns:
            (sql, params)
        """
        clauses: list[str] = []
        params: list[Any] = []

        for key, value in criteria.items():
            column_sql = self.quote(key)
            column = schema.column(key)

            if value is None:
                clauses.append(f"{column_sql} IS NULL")
            elif isinstance(value, str) and column is not None and column.type.is_textual:
                clauses.append(
                    f"LOWER({column_sql}) LIKE {self.placeholder} ESCAPE '{LIKE_ESCAPE}'"
                )
                params.append(f"%{escape_like(value.lower())}%")
            else:
                clauses.append(f"{column_sql} = {self.placeholder}")
                params.append(encode_value(value))

        sql = self.select_all(schema.name)
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
        return sql, params


SQLITE = SqlDialect(
    name="sqlite",
    placeholder="?",
    type_names={
        ColumnType.INTEGER: "INTEGER",
        ColumnType.STRING: "TEXT",
        ColumnType.TEXT: "TEXT",
        ColumnType.REAL: "REAL",
        ColumnType.DECIMAL: "REAL",
        ColumnType.TIMESTAMP: "DATETIME",
    },
    id_column="INTEGER PRIMARY KEY AUTOINCREMENT",
    empty_insert="DEFAULT VALUES",
)

MYSQL = SqlDialect(
    name="mysql",
    placeholder="%s",
    type_names={
        ColumnType.INTEGER: "INT",
        ColumnType.STRING: "VARCHAR(255)",
        ColumnType.TEXT: "TEXT",
        ColumnType.REAL: "DOUBLE",
        ColumnType.DECIMAL: "DECIMAL(10,2)",
        ColumnType.TIMESTAMP: "TIMESTAMP",
    },
    id_column="INT AUTO_INCREMENT PRIMARY KEY",
    empty_insert="() VALUES ()",
)
