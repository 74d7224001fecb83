"""Tests for connection configuration and environment settings."""

import os
from unittest.mock import MagicMock, patch

import pytest

from libs.synapse_sql_pool import (
    AuthenticationMode,
    ConnectionConfig,
    ErrorKind,
    InvalidArgument,
    SqlPoolSettings,
    UnsupportedAuthenticationMode,
)


class TestAuthenticationMode:
    """Test authentication mode parsing."""

    @pytest.mark.parametrize("mode", list(AuthenticationMode))
    def test_parse_known_values(self, mode):
        assert AuthenticationMode.parse(mode.value) is mode
        assert AuthenticationMode.parse(mode) is mode

    @pytest.mark.parametrize("value", ["Kerberos", "sqlpassword", "", None, 7])
    def test_parse_unknown_values(self, value):
        with pytest.raises(UnsupportedAuthenticationMode) as exc_info:
            AuthenticationMode.parse(value)

        assert exc_info.value.kind == ErrorKind.UNSUPPORTED_AUTHENTICATION_MODE
        assert "is not supported" in str(exc_info.value)


class TestConnectionConfig:
    """Test ConnectionConfig validation."""

    def test_defaults(self):
        config = ConnectionConfig(endpoint="server", username="user", password="pass")

        assert config.database == "master"
        assert config.mode == AuthenticationMode.SQL_PASSWORD
        assert config.port == 1433
        assert config.driver == "ODBC Driver 18 for SQL Server"
        assert config.connect_timeout == 30

    def test_password_is_secret(self):
        config = ConnectionConfig(endpoint="server", username="user", password="hunter2")

        assert config.secret() == "hunter2"
        assert "hunter2" not in repr(config)

    def test_frozen(self):
        config = ConnectionConfig(endpoint="server", username="user", password="pass")

        with pytest.raises(Exception):
            config.endpoint = "other"

    def test_unknown_field_rejected(self):
        with pytest.raises(Exception):
            ConnectionConfig(endpoint="server", mode="AadIntegrated", retries=3)

    @pytest.mark.parametrize(
        "mode, fields, missing",
        [
            ("SqlPassword", {"username": "user"}, "password"),
            ("SqlPassword", {"password": "pass"}, "username"),
            ("AadPassword", {"username": "user", "password": ""}, "password"),
            ("AadInteractive", {}, "username"),
            ("AadServicePrincipal", {"password": "secret"}, "client_id"),
            ("AadServicePrincipal", {"client_id": "cid"}, "password"),
            ("AccessToken", {}, "credential"),
        ],
    )
    def test_missing_mode_fields(self, mode, fields, missing):
        with pytest.raises(InvalidArgument) as exc_info:
            ConnectionConfig(endpoint="server", mode=mode, **fields)

        assert exc_info.value.argument == missing
        assert mode in str(exc_info.value)

    def test_integrated_needs_nothing_else(self):
        config = ConnectionConfig(endpoint="server", mode="AadIntegrated")

        assert config.username is None
        assert config.secret() is None

    def test_credential_not_serialized(self):
        config = ConnectionConfig(
            endpoint="server", mode="AccessToken", credential=MagicMock()
        )

        assert "credential" not in config.model_dump()

    def test_endpoint_with_port_rejected(self):
        with pytest.raises(InvalidArgument) as exc_info:
            ConnectionConfig(endpoint="server,1433", mode="AadIntegrated")

        assert exc_info.value.argument == "endpoint"

    @pytest.mark.parametrize("port", [0, 70000])
    def test_port_range(self, port):
        with pytest.raises(Exception):
            ConnectionConfig(endpoint="server", mode="AadIntegrated", port=port)


class TestSqlPoolSettings:
    """Test environment-driven settings."""

    def test_from_environment(self):
        env = {
            "SYNAPSE_SQL_POOL_ENDPOINT": "ws.sql.azuresynapse.net",
            "SYNAPSE_SQL_POOL_DATABASE": "pool01",
            "SYNAPSE_SQL_POOL_AUTH_MODE": "AadServicePrincipal",
            "SYNAPSE_SQL_POOL_CLIENT_ID": "app-id",
            "SYNAPSE_SQL_POOL_PASSWORD": "app-secret",
            "SYNAPSE_SQL_POOL_TENANT_ID": "tenant-id",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = SqlPoolSettings(_env_file=None)
            config = settings.to_connection_config()

        assert config.endpoint == "ws.sql.azuresynapse.net"
        assert config.database == "pool01"
        assert config.mode == AuthenticationMode.AAD_SERVICE_PRINCIPAL
        assert config.client_id == "app-id"
        assert config.secret() == "app-secret"
        assert config.tenant_id == "tenant-id"

    def test_missing_endpoint(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = SqlPoolSettings(_env_file=None)

            with pytest.raises(InvalidArgument):
                settings.to_connection_config()

    def test_unknown_mode(self):
        env = {
            "SYNAPSE_SQL_POOL_ENDPOINT": "server",
            "SYNAPSE_SQL_POOL_AUTH_MODE": "Kerberos",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = SqlPoolSettings(_env_file=None)

            with pytest.raises(UnsupportedAuthenticationMode):
                settings.to_connection_config()

    def test_access_token_with_explicit_credential(self):
        credential = MagicMock()
        env = {
            "SYNAPSE_SQL_POOL_ENDPOINT": "server",
            "SYNAPSE_SQL_POOL_AUTH_MODE": "AccessToken",
        }
        with patch.dict(os.environ, env, clear=True):
            config = SqlPoolSettings(_env_file=None).to_connection_config(credential)

        assert config.credential is credential

    def test_access_token_defaults_to_azure_credential_chain(self):
        env = {
            "SYNAPSE_SQL_POOL_ENDPOINT": "server",
            "SYNAPSE_SQL_POOL_AUTH_MODE": "AccessToken",
        }
        with (
            patch.dict(os.environ, env, clear=True),
            patch("azure.identity.DefaultAzureCredential") as default_credential,
        ):
            config = SqlPoolSettings(_env_file=None).to_connection_config()

        default_credential.assert_called_once_with()
        assert config.credential is default_credential.return_value
