"""Result data structures shared by the client and its callers."""

from collections.abc import Awaitable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from .errors import SqlPoolError

T = TypeVar("T")


class _Null(Enum):
    """Marker type for SQL NULL."""

    NULL = "NULL"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NULL"


# A column that holds SQL NULL. Distinct from a missing key and from None.
NULL = _Null.NULL

Row = dict[str, Any]
QueryResult = list[Row]


def to_parameter(value: Any) -> Any:
    """Map a caller value to what the driver binds; NULL and None become SQL NULL."""
    if value is NULL:
        return None
    return value


def from_column(value: Any) -> Any:
    """Map a value read from the driver back to the caller's representation."""
    if value is None:
        return NULL
    return value


@dataclass(frozen=True)
class OperationOutcome(Generic[T]):
    """Success payload or the error a client call ended with."""

    value: T | None = None
    error: SqlPoolError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T | None:
        """Return the payload, re-raising the captured error if there is one."""
        if self.error is not None:
            raise self.error
        return self.value


async def capture(call: Awaitable[T]) -> OperationOutcome[T]:
    """
    Await a client call and return its outcome instead of raising.

    Only ``SqlPoolError`` is captured; anything else, including task
    cancellation, propagates.

    Example:
        >>> outcome = await capture(client.table_exists("Employees"))
        >>> match outcome.error:
        ...     case None: ...
        ...     case SqlPoolError(kind=ErrorKind.CONNECTIVITY): ...
    """
    try:
        return OperationOutcome(value=await call)
    except SqlPoolError as e:
        return OperationOutcome(error=e)
