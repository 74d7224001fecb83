"""
Azure Synapse SQL Pool Client Library

Provides an async client for table lifecycle, row CRUD and ad-hoc queries
against Synapse dedicated SQL pools.

Features:
- Six authentication modes (SQL password, Azure AD password, integrated,
  interactive, service principal, bearer token)
- Parameterized statements for every value
- One OpenTelemetry span per operation
- A single domain error hierarchy for validation, connectivity and execution failures
"""

from .client import SqlPoolClient
from .config import (
    AuthenticationMode,
    ConnectionConfig,
    SqlPoolSettings,
    get_sql_pool_settings,
)
from .credentials import SQL_DEFAULT_SCOPE, ConnectionDescriptor, resolve_credentials
from .errors import (
    ConnectivityError,
    ErrorKind,
    ExecutionError,
    InvalidArgument,
    SqlPoolError,
    UnsupportedAuthenticationMode,
)
from .session import (
    DefaultSqlConnectionFactory,
    PyodbcSession,
    Session,
    SqlConnectionFactory,
    TokenSource,
)
from .statements import Statement
from .types import NULL, OperationOutcome, QueryResult, Row, capture

__all__ = [
    "SqlPoolClient",
    "AuthenticationMode",
    "ConnectionConfig",
    "SqlPoolSettings",
    "get_sql_pool_settings",
    "ConnectionDescriptor",
    "resolve_credentials",
    "SQL_DEFAULT_SCOPE",
    "SqlPoolError",
    "ErrorKind",
    "InvalidArgument",
    "UnsupportedAuthenticationMode",
    "ConnectivityError",
    "ExecutionError",
    "Session",
    "SqlConnectionFactory",
    "DefaultSqlConnectionFactory",
    "PyodbcSession",
    "TokenSource",
    "Statement",
    "NULL",
    "Row",
    "QueryResult",
    "OperationOutcome",
    "capture",
]
