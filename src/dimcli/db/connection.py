"""
Database connection management for dim-cli.

The data store is opened exactly once per process by the startup gate.
Command plugins attach their tables to ``Base.metadata``; those tables are
created when the store is opened, before any command runs.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from dimcli.exceptions import BootstrapError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all tables owned by command plugins."""

    pass


class DataStore:
    """
    Handle to the opened data store.

    Example:
        >>> async with store.session() as session:
        >>>     await session.execute(text("SELECT 1"))
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self.session_factory = async_sessionmaker(
            engine,
            expire_on_commit=False,
            class_=AsyncSession,
        )

    @property
    def url(self) -> str:
        return self.engine.url.render_as_string(hide_password=True)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Context manager for database sessions with automatic cleanup.

        Commits on success, rolls back on exception.
        """
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def ping(self) -> bool:
        """Check that the store still answers a trivial query."""
        async with self.engine.connect() as connection:
            result = await connection.execute(text("SELECT 1"))
            return result.scalar() == 1

    async def close(self) -> None:
        await self.engine.dispose()


def _ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent directory of a file-based SQLite database."""
    url = make_url(database_url)
    if not url.drivername.startswith("sqlite"):
        return
    if not url.database or url.database == ":memory:":
        return
    Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)


def _hint_for(error: Exception, database_url: str) -> str:
    error_str = str(error).lower()

    if "unable to open database file" in error_str or isinstance(error, PermissionError):
        return (
            "The database file cannot be opened.\n"
            "  - Check permissions of the data directory\n"
            "  - Or point DIMCLI_DATABASE_URL at a writable location"
        )
    if "could not connect" in error_str or "connection refused" in error_str:
        return (
            "The database server is not reachable.\n"
            f"  - Current URL: {database_url}"
        )
    if "no module named" in error_str:
        return "The database driver is not installed (e.g. pip install aiosqlite)"
    return f"Check DIMCLI_DATABASE_URL\nError: {error}"


async def open_store(database_url: str, echo: bool = False) -> DataStore:
    """
    Open the data store and make sure its schema exists.

    Args:
        database_url: SQLAlchemy async database URL
        echo: Log every SQL statement

    Returns:
        DataStore ready for use

    Raises:
        BootstrapError: If the store cannot be opened or probed
    """
    try:
        _ensure_sqlite_directory(database_url)
        engine = create_async_engine(database_url, echo=echo)
    except ArgumentError as e:
        raise BootstrapError(
            f"Invalid database URL: {database_url}",
            "Use an async SQLAlchemy URL such as sqlite+aiosqlite:///path/to/dimcli.db",
        ) from e
    except Exception as e:
        raise BootstrapError(
            f"Cannot open data store at {database_url}",
            _hint_for(e, database_url),
        ) from e

    try:
        async with engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)
            result = await connection.execute(text("SELECT 1"))
            if result.scalar() != 1:
                raise BootstrapError(
                    "Database query returned unexpected result",
                    "Database may be corrupted or misconfigured",
                )
    except BootstrapError:
        await engine.dispose()
        raise
    except Exception as e:
        await engine.dispose()
        raise BootstrapError(
            f"Cannot initialize data store at {engine.url.render_as_string(hide_password=True)}",
            _hint_for(e, database_url),
        ) from e

    logger.debug("Data store ready: %s", engine.url.render_as_string(hide_password=True))
    return DataStore(engine)
