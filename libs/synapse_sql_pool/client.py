"""
Client for CRUD operations against Azure Synapse SQL pools.

Every operation follows the same lifecycle: validate arguments, open a
diagnostic span, acquire a session, execute one statement, materialize the
result, end the span, translate failures. A session is opened per call and
closed before the call returns.
"""

from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from typing import Any

import structlog
from opentelemetry import trace

from . import statements
from .config import ConnectionConfig
from .diagnostics import DIAGNOSTIC_NAMESPACE, OperationSpan
from .errors import (
    ConnectivityError,
    ExecutionError,
    SqlPoolError,
    require_mapping,
    require_text,
    sanitize_error_message,
)
from .session import DefaultSqlConnectionFactory, Session, SqlConnectionFactory
from .types import NULL, QueryResult, from_column

# Resolved once; delegates to whichever tracer provider the process installs.
_default_tracer = trace.get_tracer(DIAGNOSTIC_NAMESPACE)


class SqlPoolClient:
    """
    Client for performing CRUD operations on a Synapse SQL pool.

    Args:
        config: ConnectionConfig, or a dict of its fields
        factory: Session factory override; defaults to the pyodbc factory
        tracer: Tracer override; defaults to the process-wide tracer

    Raises:
        InvalidArgument: If endpoint/database are empty or the mode's fields are missing
        UnsupportedAuthenticationMode: If the configured mode is unknown
    """

    def __init__(
        self,
        config: ConnectionConfig | dict[str, Any],
        factory: SqlConnectionFactory | None = None,
        tracer: trace.Tracer | None = None,
    ):
        if not isinstance(config, ConnectionConfig):
            config = ConnectionConfig(**config)
        self.config = config
        self._factory = factory or DefaultSqlConnectionFactory(config)
        self.tracer = tracer or _default_tracer
        self.logger = structlog.get_logger(__name__).bind(
            endpoint=config.endpoint,
            database=config.database,
            auth_mode=config.mode.value,
            client_id=id(self),
        )

    async def open_session(self) -> Session:
        """
        Open a new session. The caller owns it and must close it.

        Raises:
            ConnectivityError: If the session cannot be established
        """
        try:
            return await self._factory.open_session()
        except SqlPoolError:
            raise
        except Exception as e:
            raise ConnectivityError(
                f"Failed to open session to '{self.config.endpoint}': {e}",
                self.config.endpoint,
                cause=e,
            ) from e

    @asynccontextmanager
    async def session(self) -> AsyncIterator[Session]:
        """Open a session that is closed when the block exits."""
        session = await self.open_session()
        try:
            yield session
        finally:
            await session.close()

    @asynccontextmanager
    async def _operation(
        self,
        operation: str,
        event: str,
        failure_message: str,
        target: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> AsyncIterator[tuple[Session, OperationSpan]]:
        with OperationSpan(self.tracer, operation, attributes) as span:
            try:
                async with self.session() as session:
                    yield session, span
            except SqlPoolError as e:
                self.logger.error(f"{event}_failed", table_name=target, error=e.message)
                raise
            except Exception as e:
                span.fail(e)
                self.logger.error(
                    f"{event}_failed",
                    table_name=target,
                    error=sanitize_error_message(str(e)),
                    error_type=type(e).__name__,
                )
                raise ExecutionError(
                    failure_message, operation, target, cause=e
                ) from e

    async def create_table(self, table_name: str, schema_definition: str) -> None:
        """
        Create a table.

        Args:
            table_name: Table name
            schema_definition: Column definition clause, e.g. ``(Id INT, Name VARCHAR(50))``
        """
        require_text(table_name, "table_name", "Table name")
        require_text(schema_definition, "schema_definition", "Schema definition")

        self.logger.info("creating_table", table_name=table_name)
        async with self._operation(
            "CreateTable",
            "create_table",
            f"Failed to create table '{table_name}'.",
            table_name,
            {"table_name": table_name, "schema_definition": schema_definition},
        ) as (session, _):
            await session.execute(
                statements.create_table(table_name, schema_definition)
            )
        self.logger.info("table_created", table_name=table_name)

    async def drop_table(self, table_name: str) -> None:
        """Drop a table if it exists."""
        require_text(table_name, "table_name", "Table name")

        self.logger.info("dropping_table", table_name=table_name)
        async with self._operation(
            "DropTable",
            "drop_table",
            f"Failed to drop table '{table_name}'.",
            table_name,
            {"table_name": table_name},
        ) as (session, _):
            await session.execute(statements.drop_table(table_name))
        self.logger.info("table_dropped", table_name=table_name)

    async def table_exists(self, table_name: str) -> bool:
        """Return True if a table with this name exists in the catalog."""
        require_text(table_name, "table_name", "Table name")

        self.logger.info("checking_table_exists", table_name=table_name)
        async with self._operation(
            "TableExists",
            "table_exists",
            f"Failed to check if table '{table_name}' exists.",
            table_name,
            {"table_name": table_name},
        ) as (session, span):
            count = await session.scalar(statements.table_exists(table_name))
            exists = count is not None and count is not NULL and int(count) != 0
            span.record(table_exists=exists)
        self.logger.info("table_exists_checked", table_name=table_name, exists=exists)
        return exists

    async def list_tables(self) -> list[str]:
        """List all base tables."""
        self.logger.info("listing_tables")
        async with self._operation(
            "ListTables", "list_tables", "Failed to list tables."
        ) as (session, span):
            _, rows = await session.fetch_all(statements.list_tables())
            tables = [str(row[0]) for row in rows]
            span.record(table_count=len(tables))
        self.logger.info("tables_listed", table_count=len(tables))
        return tables

    async def insert_row(self, table_name: str, row_data: Mapping[str, Any]) -> None:
        """
        Insert one row.

        Args:
            table_name: Table name
            row_data: Column name to value; None or NULL store SQL NULL
        """
        require_text(table_name, "table_name", "Table name")
        require_mapping(row_data, "row_data", "Row data")

        self.logger.info("inserting_row", table_name=table_name)
        async with self._operation(
            "InsertRow",
            "insert_row",
            f"Failed to insert row into '{table_name}'.",
            table_name,
            {"table_name": table_name},
        ) as (session, span):
            affected = await session.execute(statements.insert_row(table_name, row_data))
            span.record(inserted_column_count=len(row_data), affected_rows=affected)
        self.logger.info("row_inserted", table_name=table_name)

    async def query(self, sql_query: str) -> QueryResult:
        """
        Run a query and return its rows in result-set order.

        SQL NULL columns are returned as ``NULL``.
        """
        require_text(sql_query, "sql_query", "SQL query")

        self.logger.info("executing_query")
        async with self._operation(
            "Query", "query", "Failed to execute query."
        ) as (session, span):
            columns, rows = await session.fetch_all(statements.query(sql_query))
            results = [
                {column: from_column(value) for column, value in zip(columns, row)}
                for row in rows
            ]
            span.record(row_count=len(results))
        self.logger.info("query_completed", row_count=len(results))
        return results

    async def update_rows(
        self, table_name: str, where_clause: str, updated_values: Mapping[str, Any]
    ) -> None:
        """
        Update rows matching ``where_clause``.

        Args:
            table_name: Table name
            where_clause: WHERE condition, inserted verbatim
            updated_values: Column name to new value
        """
        require_text(table_name, "table_name", "Table name")
        require_text(where_clause, "where_clause", "Where clause")
        require_mapping(updated_values, "updated_values", "Updated values")

        self.logger.info(
            "updating_rows", table_name=table_name, where_clause=where_clause
        )
        async with self._operation(
            "UpdateRows",
            "update_rows",
            f"Failed to update rows in '{table_name}'.",
            table_name,
            {"table_name": table_name, "where_clause": where_clause},
        ) as (session, span):
            affected = await session.execute(
                statements.update_rows(table_name, where_clause, updated_values)
            )
            span.record(
                updated_column_count=len(updated_values), affected_rows=affected
            )
        self.logger.info("rows_updated", table_name=table_name)

    async def delete_rows(self, table_name: str, where_clause: str) -> None:
        """Delete rows matching ``where_clause``."""
        require_text(table_name, "table_name", "Table name")
        require_text(where_clause, "where_clause", "Where clause")

        self.logger.info(
            "deleting_rows", table_name=table_name, where_clause=where_clause
        )
        async with self._operation(
            "DeleteRows",
            "delete_rows",
            f"Failed to delete rows from '{table_name}'.",
            table_name,
            {"table_name": table_name, "where_clause": where_clause},
        ) as (session, span):
            affected = await session.execute(
                statements.delete_rows(table_name, where_clause)
            )
            span.record(affected_rows=affected)
        self.logger.info("rows_deleted", table_name=table_name)
