"""
Statement construction for SQL pool operations.

Values are always bound as qmark (``?``) parameters, in column order. Table
names, column names, schema definitions and WHERE clauses are inserted
verbatim and never rewritten; callers are responsible for their safety.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .types import to_parameter

TABLE_EXISTS_SQL = (
    "SELECT COUNT(*) FROM INFORMATION_SCHEMA.TABLES WHERE TABLE_NAME = ?"
)
LIST_TABLES_SQL = (
    "SELECT TABLE_NAME FROM INFORMATION_SCHEMA.TABLES WHERE TABLE_TYPE = 'BASE TABLE'"
)


@dataclass(frozen=True)
class Statement:
    """SQL text with ``?`` markers and the values bound to them, in order."""

    operation: str
    text: str
    parameters: tuple[Any, ...] = ()


def _bind(values: Mapping[str, Any]) -> tuple[Any, ...]:
    return tuple(to_parameter(value) for value in values.values())


def create_table(table: str, schema_definition: str) -> Statement:
    return Statement("CreateTable", f"CREATE TABLE {table} {schema_definition}")


def drop_table(table: str) -> Statement:
    return Statement("DropTable", f"DROP TABLE IF EXISTS {table}")


def table_exists(table: str) -> Statement:
    return Statement("TableExists", TABLE_EXISTS_SQL, (table,))


def list_tables() -> Statement:
    return Statement("ListTables", LIST_TABLES_SQL)


def insert_row(table: str, row: Mapping[str, Any]) -> Statement:
    """Build an INSERT with one marker per column, in the row's order."""
    columns = ", ".join(row.keys())
    markers = ", ".join("?" for _ in row)
    return Statement(
        "InsertRow",
        f"INSERT INTO {table} ({columns}) VALUES ({markers})",
        _bind(row),
    )


def query(sql: str) -> Statement:
    return Statement("Query", sql)


def update_rows(table: str, where_clause: str, values: Mapping[str, Any]) -> Statement:
    """Build an UPDATE whose SET clause binds every value."""
    set_clause = ", ".join(f"{column} = ?" for column in values.keys())
    return Statement(
        "UpdateRows",
        f"UPDATE {table} SET {set_clause} WHERE {where_clause}",
        _bind(values),
    )


def delete_rows(table: str, where_clause: str) -> Statement:
    return Statement("DeleteRows", f"DELETE FROM {table} WHERE {where_clause}")
