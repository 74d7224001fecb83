"""SQLAlchemy integration: bind an engine to one session opened by the client."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from .client import SqlPoolClient
from .errors import InvalidArgument
from .session import Session

DEFAULT_ENGINE_URL = "mssql+pyodbc://"


def create_engine_for_session(
    session: Session, url: str = DEFAULT_ENGINE_URL, **engine_kwargs: Any
) -> Engine:
    """
    Create an engine whose only connection is the session's DBAPI connection.

    The session keeps ownership of the connection: dispose the engine with
    ``engine.dispose(close=False)`` and close the session separately.

    Raises:
        InvalidArgument: If the session does not expose a DBAPI connection
    """
    connection = getattr(session, "connection", None)
    if connection is None:
        raise InvalidArgument(
            "Session does not expose a DBAPI connection.", "session"
        )
    return create_engine(
        url,
        creator=lambda: connection,
        poolclass=StaticPool,
        **engine_kwargs,
    )


@asynccontextmanager
async def sqlalchemy_engine(
    client: SqlPoolClient, url: str = DEFAULT_ENGINE_URL, **engine_kwargs: Any
) -> AsyncIterator[Engine]:
    """
    Open a session through the client and yield an engine bound to it.

    On exit the engine is dropped without closing the connection, then the
    session closes it.

    Example:
        >>> async with sqlalchemy_engine(client) as engine:
        ...     with Session(engine) as orm_session:
        ...         orm_session.add(employee)
    """
    session = await client.open_session()
    try:
        engine = create_engine_for_session(session, url, **engine_kwargs)
        try:
            yield engine
        finally:
            engine.dispose(close=False)
    finally:
        await session.close()
