"""
Credential resolution for SQL pool sessions.

Turns a ``ConnectionConfig`` into the descriptor a session is opened from.
This module performs no I/O; bearer tokens for ``AccessToken`` mode are
fetched later by the session factory.
"""

from typing import assert_never

from pydantic import BaseModel, ConfigDict, SecretStr

from .config import CONNECT_TIMEOUT_SECONDS, AuthenticationMode, ConnectionConfig
from .errors import UnsupportedAuthenticationMode

# Audience requested for bearer tokens.
SQL_DEFAULT_SCOPE = "https://database.windows.net/.default"

_ODBC_SPECIAL_CHARS = set(";{}=")


def _odbc_value(value: str) -> str:
    """Quote a connection string value when the ODBC grammar requires it."""
    if any(c in _ODBC_SPECIAL_CHARS for c in value) or value != value.strip():
        return "{" + value.replace("}", "}}") + "}"
    return value


class ConnectionDescriptor(BaseModel):
    """Everything needed to open one session, minus any bearer token."""

    model_config = ConfigDict(frozen=True)

    server: str
    database: str
    driver: str
    port: int
    encrypt: bool = True
    trust_server_certificate: bool = False
    connect_timeout: int = CONNECT_TIMEOUT_SECONDS

    authentication: str | None = None
    user_id: str | None = None
    password: SecretStr | None = None
    authority_id: str | None = None
    requires_token: bool = False

    def odbc_connection_string(self, mask_secrets: bool = False) -> str:
        """
        Render the ODBC connection string.

        Args:
            mask_secrets: Replace the password with ``***`` (for logging)

        Returns:
            str: Connection string for pyodbc.connect
        """
        parts = [
            ("Driver", "{" + self.driver + "}"),
            ("Server", f"tcp:{self.server},{self.port}"),
            ("Database", _odbc_value(self.database)),
            ("Encrypt", "yes" if self.encrypt else "no"),
            ("TrustServerCertificate", "yes" if self.trust_server_certificate else "no"),
            ("Connection Timeout", str(self.connect_timeout)),
        ]
        if self.authentication:
            parts.append(("Authentication", self.authentication))
        if self.user_id:
            parts.append(("UID", _odbc_value(self.user_id)))
        if self.password is not None:
            pwd = "***" if mask_secrets else self.password.get_secret_value()
            parts.append(("PWD", _odbc_value(pwd)))
        if self.authority_id:
            parts.append(("Authority Id", _odbc_value(self.authority_id)))

        return "".join(f"{key}={value};" for key, value in parts)


def resolve_credentials(config: ConnectionConfig) -> ConnectionDescriptor:
    """
    Build the session descriptor for the configured authentication mode.

    Raises:
        UnsupportedAuthenticationMode: If ``config.mode`` is not a known mode
    """
    mode = config.mode
    if not isinstance(mode, AuthenticationMode):
        raise UnsupportedAuthenticationMode(mode)

    base = {
        "server": config.endpoint,
        "database": config.database,
        "driver": config.driver,
        "port": config.port,
        "connect_timeout": config.connect_timeout,
    }

    match mode:
        case AuthenticationMode.SQL_PASSWORD:
            return ConnectionDescriptor(
                **base, user_id=config.username, password=config.password
            )
        case AuthenticationMode.AAD_PASSWORD:
            return ConnectionDescriptor(
                **base,
                authentication="ActiveDirectoryPassword",
                user_id=config.username,
                password=config.password,
            )
        case AuthenticationMode.AAD_INTEGRATED:
            return ConnectionDescriptor(
                **base, authentication="ActiveDirectoryIntegrated"
            )
        case AuthenticationMode.AAD_INTERACTIVE:
            return ConnectionDescriptor(
                **base,
                authentication="ActiveDirectoryInteractive",
                user_id=config.username,
            )
        case AuthenticationMode.AAD_SERVICE_PRINCIPAL:
            return ConnectionDescriptor(
                **base,
                authentication="ActiveDirectoryServicePrincipal",
                user_id=config.client_id,
                password=config.password,
                authority_id=config.tenant_id or None,
            )
        case AuthenticationMode.ACCESS_TOKEN:
            return ConnectionDescriptor(**base, requires_token=True)
        case _:
            assert_never(mode)
