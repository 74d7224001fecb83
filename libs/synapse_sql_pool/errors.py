"""
Error taxonomy for the Synapse SQL pool client.

Every failure surfaced by the client is a ``SqlPoolError`` carrying an
``ErrorKind`` and, where one exists, the underlying cause.
"""

import re
from enum import Enum


def sanitize_error_message(error_message: str) -> str:
    """
    Sanitize error messages to remove sensitive information.

    Args:
        error_message: The raw error message

    Returns:
        str: Sanitized error message
    """
    sensitive_patterns = [
        (r'pwd[=:]\s*[\'"{][^\'";}]+[\'"}]', "PWD=***"),
        (r"pwd[=:]\s*[^;\s]+", "PWD=***"),
        (r'password[=:]\s*[\'"][^\'";]+[\'"]', "password=***"),
        (r"password[=:]\s*\w+", "password=***"),
        (r'token[=:]\s*[\'"][^\'";]+[\'"]', "token=***"),
        (r"access_token[=:]\s*[^;\s]+", "access_token=***"),
        (r"secret[=:]\s*[^;\s]+", "secret=***"),
    ]

    sanitized_message = error_message
    for pattern, replacement in sensitive_patterns:
        sanitized_message = re.sub(
            pattern, replacement, sanitized_message, flags=re.IGNORECASE
        )

    return sanitized_message


class ErrorKind(str, Enum):
    """Kinds of failure a client call can end with."""

    INVALID_ARGUMENT = "invalid_argument"
    UNSUPPORTED_AUTHENTICATION_MODE = "unsupported_authentication_mode"
    CONNECTIVITY = "connectivity"
    EXECUTION = "execution"


class SqlPoolError(Exception):
    """Base class for all errors raised by the SQL pool client."""

    kind: ErrorKind

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class InvalidArgument(SqlPoolError):
    """Raised for malformed caller input, before any I/O takes place."""

    kind = ErrorKind.INVALID_ARGUMENT

    def __init__(self, message: str, argument: str | None = None):
        super().__init__(message)
        self.argument = argument


class UnsupportedAuthenticationMode(SqlPoolError):
    """Raised when a configuration names an authentication mode we cannot use."""

    kind = ErrorKind.UNSUPPORTED_AUTHENTICATION_MODE

    def __init__(self, mode: object):
        super().__init__(f"Authentication mode '{mode}' is not supported.")
        self.mode = mode


class ConnectivityError(SqlPoolError):
    """Raised when a session cannot be established."""

    kind = ErrorKind.CONNECTIVITY

    def __init__(self, message: str, endpoint: str, cause: BaseException | None = None):
        super().__init__(sanitize_error_message(message), cause)
        self.endpoint = endpoint


class ExecutionError(SqlPoolError):
    """Raised when a statement fails against an open session."""

    kind = ErrorKind.EXECUTION

    def __init__(
        self,
        message: str,
        operation: str,
        table: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message, cause)
        self.operation = operation
        self.table = table


def require_text(value: str | None, argument: str, label: str) -> str:
    """Return ``value`` unchanged, or raise InvalidArgument if it is blank."""
    if value is None or not isinstance(value, str) or not value.strip():
        raise InvalidArgument(f"{label} must not be null or empty.", argument)
    return value


def require_mapping(value, argument: str, label: str):
    """Return ``value`` unchanged, or raise InvalidArgument if it is empty."""
    if value is None or len(value) == 0:
        raise InvalidArgument(f"{label} must not be null or empty.", argument)
    return value
