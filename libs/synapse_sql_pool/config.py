"""
Type-safe connection configuration for Synapse SQL pools.

``ConnectionConfig`` is created once per client and never mutated. It is
validated at construction, so an incomplete configuration fails before any
network activity.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import InvalidArgument, UnsupportedAuthenticationMode

DEFAULT_DRIVER = "ODBC Driver 18 for SQL Server"
DEFAULT_PORT = 1433
CONNECT_TIMEOUT_SECONDS = 30


class AuthenticationMode(str, Enum):
    """Supported authentication modes for SQL pool connections."""

    SQL_PASSWORD = "SqlPassword"
    AAD_PASSWORD = "AadPassword"
    AAD_INTEGRATED = "AadIntegrated"
    AAD_INTERACTIVE = "AadInteractive"
    AAD_SERVICE_PRINCIPAL = "AadServicePrincipal"
    ACCESS_TOKEN = "AccessToken"

    @classmethod
    def parse(cls, value: Any) -> "AuthenticationMode":
        """Coerce ``value`` to a mode, raising UnsupportedAuthenticationMode otherwise."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedAuthenticationMode(value) from None


# Fields each mode needs before a session can be opened.
REQUIRED_FIELDS: dict[AuthenticationMode, tuple[str, ...]] = {
    AuthenticationMode.SQL_PASSWORD: ("username", "password"),
    AuthenticationMode.AAD_PASSWORD: ("username", "password"),
    AuthenticationMode.AAD_INTEGRATED: (),
    AuthenticationMode.AAD_INTERACTIVE: ("username",),
    AuthenticationMode.AAD_SERVICE_PRINCIPAL: ("client_id", "password"),
    AuthenticationMode.ACCESS_TOKEN: ("credential",),
}


class ConnectionConfig(BaseModel):
    """Connection settings for one SQL pool client."""

    model_config = ConfigDict(
        frozen=True, extra="forbid", arbitrary_types_allowed=True
    )

    endpoint: str = Field(..., description="SQL pool endpoint host name")
    database: str = Field(default="master", description="Database name")
    mode: AuthenticationMode = Field(
        default=AuthenticationMode.SQL_PASSWORD, description="Authentication mode"
    )

    username: str | None = Field(default=None, description="User name or login hint")
    password: SecretStr | None = Field(
        default=None, description="Password or service principal secret"
    )
    client_id: str | None = Field(
        default=None, description="Service principal application id"
    )
    tenant_id: str | None = Field(
        default=None, description="Directory tenant used as authority"
    )
    credential: Any | None = Field(
        default=None,
        description="Token source with a get_token(*scopes) method",
        exclude=True,
    )

    driver: str = Field(default=DEFAULT_DRIVER, min_length=1)
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    connect_timeout: int = Field(default=CONNECT_TIMEOUT_SECONDS, ge=1, le=300)

    @field_validator("endpoint", "database", mode="before")
    @classmethod
    def validate_not_blank(cls, v: Any, info) -> Any:
        if v is None or not isinstance(v, str) or not v.strip():
            raise InvalidArgument(
                f"{info.field_name} must not be null or empty.", info.field_name
            )
        return v

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        # The port is rendered from the port field; a second one breaks Server=.
        if "," in v:
            raise InvalidArgument(
                "endpoint must be a host name without a port; set port instead.",
                "endpoint",
            )
        return v

    @field_validator("mode", mode="before")
    @classmethod
    def validate_mode(cls, v: Any) -> AuthenticationMode:
        return AuthenticationMode.parse(v)

    @model_validator(mode="after")
    def validate_authentication(self) -> "ConnectionConfig":
        """Ensure the fields the selected mode needs are present."""
        for field_name in REQUIRED_FIELDS[self.mode]:
            value = getattr(self, field_name)
            if isinstance(value, SecretStr):
                value = value.get_secret_value()
            if value is None or (isinstance(value, str) and not value.strip()):
                raise InvalidArgument(
                    f"{field_name} is required for {self.mode.value} authentication.",
                    field_name,
                )
        return self

    def secret(self) -> str | None:
        """Return the plain password or client secret."""
        return self.password.get_secret_value() if self.password else None


class SqlPoolSettings(BaseSettings):
    """SQL pool connection settings loaded from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="SYNAPSE_SQL_POOL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    endpoint: str = Field(default="", description="SQL pool endpoint host name")
    database: str = Field(default="master", description="Database name")
    auth_mode: str = Field(
        default=AuthenticationMode.SQL_PASSWORD.value,
        description="One of the AuthenticationMode values",
    )
    username: str | None = None
    password: SecretStr | None = None
    client_id: str | None = None
    tenant_id: str | None = None
    driver: str = DEFAULT_DRIVER
    port: int = DEFAULT_PORT

    def to_connection_config(self, credential: Any | None = None) -> ConnectionConfig:
        """
        Build a validated ConnectionConfig from these settings.

        For ``AccessToken`` mode without an explicit credential, the
        ``DefaultAzureCredential`` chain from azure-identity is used.
        """
        mode = AuthenticationMode.parse(self.auth_mode)
        if mode is AuthenticationMode.ACCESS_TOKEN and credential is None:
            from azure.identity import DefaultAzureCredential

            credential = DefaultAzureCredential()

        return ConnectionConfig(
            endpoint=self.endpoint,
            database=self.database,
            mode=mode,
            username=self.username,
            password=self.password,
            client_id=self.client_id,
            tenant_id=self.tenant_id,
            credential=credential,
            driver=self.driver,
            port=self.port,
        )


def get_sql_pool_settings() -> SqlPoolSettings:
    """Get SQL pool settings instance."""
    return SqlPoolSettings()
