"""Pytest configuration and shared fixtures."""

import sqlite3
from typing import Any

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
    InMemorySpanExporter,
)

from libs.synapse_sql_pool.config import AuthenticationMode, ConnectionConfig
from libs.synapse_sql_pool.session import PyodbcSession, Session, SqlConnectionFactory
from libs.synapse_sql_pool.statements import LIST_TABLES_SQL, TABLE_EXISTS_SQL

# SQLite has no INFORMATION_SCHEMA; catalog statements are answered from sqlite_master.
_CATALOG_REWRITES = {
    TABLE_EXISTS_SQL: "SELECT COUNT(*) FROM sqlite_master WHERE type = 'table' AND name = ?",
    LIST_TABLES_SQL: (
        "SELECT name AS TABLE_NAME FROM sqlite_master WHERE type = 'table' ORDER BY name"
    ),
}


class SqliteCursor:
    """qmark cursor over the shared database, recording what it executes."""

    def __init__(self, connection: "SqliteConnection"):
        self._connection = connection
        self._cursor = connection.factory.database.cursor()

    def execute(self, sql: str, parameters: Any = ()):
        self._connection.factory.executed.append((sql, list(parameters)))
        self._cursor.execute(_CATALOG_REWRITES.get(sql, sql), parameters)
        return self

    def cancel(self) -> None:
        self._connection.factory.database.interrupt()

    def __getattr__(self, name: str) -> Any:
        return getattr(self._cursor, name)


class SqliteConnection:
    """
    DBAPI connection handed to one session.

    Like pyodbc, a second ``close()`` raises; the shared database stays open.
    """

    def __init__(self, factory: "SqliteSessionFactory"):
        self.factory = factory
        self.closed = False

    def cursor(self) -> SqliteCursor:
        if self.closed:
            raise RuntimeError("Attempt to use a closed connection.")
        return SqliteCursor(self)

    def close(self) -> None:
        if self.closed:
            raise RuntimeError("Attempt to use a closed connection.")
        self.closed = True
        self.factory.closed += 1

    def __getattr__(self, name: str) -> Any:
        return getattr(self.factory.database, name)


class SqliteSessionFactory(SqlConnectionFactory):
    """Opens pyodbc-style sessions over one in-memory SQLite database."""

    def __init__(self):
        self.database = sqlite3.connect(
            ":memory:", isolation_level=None, check_same_thread=False
        )
        self.executed: list[tuple[str, list[Any]]] = []
        self.opened = 0
        self.closed = 0

    async def open_session(self) -> Session:
        self.opened += 1
        return PyodbcSession(SqliteConnection(self))


class ForbiddenSessionFactory(SqlConnectionFactory):
    """Fails the test if a session is ever requested."""

    def __init__(self):
        self.calls = 0

    async def open_session(self) -> Session:
        self.calls += 1
        pytest.fail("session factory must not be called")


@pytest.fixture
def span_exporter():
    """In-memory exporter capturing finished spans."""
    return InMemorySpanExporter()


@pytest.fixture
def tracer(span_exporter):
    """Tracer writing to the in-memory exporter."""
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    return provider.get_tracer("tests")


@pytest.fixture
def sql_config():
    """SQL password configuration."""
    return ConnectionConfig(
        endpoint="myworkspace.sql.azuresynapse.net",
        database="sqlpool01",
        mode=AuthenticationMode.SQL_PASSWORD,
        username="sqladmin",
        password="s3cret!",
    )


@pytest.fixture
def sqlite_factory():
    factory = SqliteSessionFactory()
    yield factory
    factory.database.close()


@pytest.fixture
def forbidden_factory():
    return ForbiddenSessionFactory()
