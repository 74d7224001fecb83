"""
Session interface and the default pyodbc-backed session factory.

The session factory is the only component that performs network I/O to
establish connectivity. Blocking driver calls run in the event loop's
default executor so each client operation stays a single awaitable unit
that can be cancelled.
"""

import asyncio
import inspect
import struct
from abc import ABC, abstractmethod
from collections.abc import Sequence
from functools import partial
from typing import Any, Protocol, runtime_checkable

import structlog

from libs.observability.tracing import add_span_event

from .config import ConnectionConfig
from .credentials import SQL_DEFAULT_SCOPE, ConnectionDescriptor, resolve_credentials
from .errors import ConnectivityError, sanitize_error_message
from .statements import Statement

# Pre-connect attribute understood by the SQL Server ODBC driver.
SQL_COPT_SS_ACCESS_TOKEN = 1256


@runtime_checkable
class TokenSource(Protocol):
    """Anything shaped like an azure-identity credential."""

    def get_token(self, *scopes: str, **kwargs: Any) -> Any: ...


def pack_access_token(token: str) -> bytes:
    """Encode a bearer token the way the ODBC driver expects it."""
    raw = token.encode("utf-16-le")
    return struct.pack(f"<I{len(raw)}s", len(raw), raw)


class Session(ABC):
    """An open, authenticated handle to the SQL pool, scoped to one operation."""

    @abstractmethod
    async def execute(self, statement: Statement) -> int:
        """Run a statement that returns no rows; return the affected row count."""
        pass

    @abstractmethod
    async def scalar(self, statement: Statement) -> Any:
        """Run a statement and return the first column of the first row."""
        pass

    @abstractmethod
    async def fetch_all(
        self, statement: Statement
    ) -> tuple[list[str], list[Sequence[Any]]]:
        """Run a statement and return its column names and rows."""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class SqlConnectionFactory(ABC):
    """Creates open sessions. Injected into the client so tests can substitute it."""

    @abstractmethod
    async def open_session(self) -> Session:
        """
        Open a new authenticated session.

        Raises:
            ConnectivityError: If the session cannot be established
        """
        pass


def _discard_late_result(future: asyncio.Future) -> None:
    """Release a connection that finished opening after its caller stopped waiting."""
    if future.cancelled() or future.exception() is not None:
        return
    future.result().close()


class PyodbcSession(Session):
    """Session over one pyodbc connection."""

    def __init__(self, connection: Any):
        self._connection = connection
        self._pending: asyncio.Future | None = None
        self._closed = False

    @property
    def connection(self) -> Any:
        """The underlying DBAPI connection."""
        return self._connection

    async def _run(self, statement: Statement, work) -> Any:
        cursor = self._connection.cursor()

        def run_sync() -> Any:
            try:
                if statement.parameters:
                    cursor.execute(statement.text, list(statement.parameters))
                else:
                    cursor.execute(statement.text)
                return work(cursor)
            finally:
                cursor.close()

        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, run_sync)
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            # The worker keeps running until the driver sees the cancel.
            cursor.cancel()
            self._pending = future
            raise

    async def execute(self, statement: Statement) -> int:
        return await self._run(statement, lambda cursor: cursor.rowcount)

    async def scalar(self, statement: Statement) -> Any:
        def first_value(cursor) -> Any:
            row = cursor.fetchone()
            return row[0] if row is not None else None

        return await self._run(statement, first_value)

    async def fetch_all(
        self, statement: Statement
    ) -> tuple[list[str], list[Sequence[Any]]]:
        def rows(cursor) -> tuple[list[str], list[Sequence[Any]]]:
            columns = (
                [desc[0] for desc in cursor.description] if cursor.description else []
            )
            return columns, [tuple(row) for row in cursor.fetchall()]

        return await self._run(statement, rows)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._pending is not None and not self._pending.done():
            self._pending.add_done_callback(self._close_after)
            return
        self._connection.close()

    def _close_after(self, future: asyncio.Future) -> None:
        if not future.cancelled():
            future.exception()
        self._connection.close()


class DefaultSqlConnectionFactory(SqlConnectionFactory):
    """Opens pyodbc sessions for any supported authentication mode."""

    def __init__(self, config: ConnectionConfig):
        self.config = config
        # Raises UnsupportedAuthenticationMode before any network activity.
        self.descriptor: ConnectionDescriptor = resolve_credentials(config)
        self.logger = structlog.get_logger(__name__).bind(
            endpoint=config.endpoint,
            database=config.database,
            auth_mode=config.mode.value,
        )

    async def _acquire_token(self) -> str:
        """Request a bearer token for the SQL pool audience."""
        get_token = self.config.credential.get_token
        if inspect.iscoroutinefunction(get_token):
            token = await get_token(SQL_DEFAULT_SCOPE)
        else:
            loop = asyncio.get_running_loop()
            token = await loop.run_in_executor(None, get_token, SQL_DEFAULT_SCOPE)
        return token.token if hasattr(token, "token") else str(token)

    def _connect_sync(self, connection_string: str, attrs_before: dict[int, bytes]):
        import pyodbc

        if attrs_before:
            return pyodbc.connect(
                connection_string,
                autocommit=True,
                timeout=self.descriptor.connect_timeout,
                attrs_before=attrs_before,
            )
        return pyodbc.connect(
            connection_string,
            autocommit=True,
            timeout=self.descriptor.connect_timeout,
        )

    async def open_session(self) -> Session:
        """Open a session, fetching a bearer token first in AccessToken mode."""
        attrs_before: dict[int, bytes] = {}

        if self.descriptor.requires_token:
            self.logger.debug("acquiring_access_token", scope=SQL_DEFAULT_SCOPE)
            try:
                token = await self._acquire_token()
            except Exception as e:
                self.logger.error(
                    "access_token_failed",
                    error=sanitize_error_message(str(e)),
                    error_type=type(e).__name__,
                )
                raise ConnectivityError(
                    f"Failed to acquire access token for '{self.config.endpoint}': {e}",
                    self.config.endpoint,
                    cause=e,
                ) from e
            attrs_before[SQL_COPT_SS_ACCESS_TOKEN] = pack_access_token(token)
            add_span_event("access_token_acquired", {"scope": SQL_DEFAULT_SCOPE})

        self.logger.info(
            "opening_session",
            connection_string=self.descriptor.odbc_connection_string(mask_secrets=True),
        )

        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(
            None,
            partial(
                self._connect_sync,
                self.descriptor.odbc_connection_string(),
                attrs_before,
            ),
        )
        try:
            connection = await asyncio.shield(future)
        except asyncio.CancelledError:
            self.logger.warning("session_open_cancelled")
            future.add_done_callback(_discard_late_result)
            raise
        except Exception as e:
            self.logger.error(
                "session_open_failed",
                error=sanitize_error_message(str(e)),
                error_type=type(e).__name__,
            )
            raise ConnectivityError(
                f"Failed to connect to '{self.config.endpoint}': {e}",
                self.config.endpoint,
                cause=e,
            ) from e

        self.logger.info("session_opened")
        add_span_event("session_opened", {"endpoint": self.config.endpoint})
        return PyodbcSession(connection)
