"""Unit-of-work plumbing shared by every DAO."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import ClassVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from iclock_server.utils.db import StorageError


class BaseDAO:
    """Data access built once at startup with the connection pool.

    Use transaction() to wrap a group of operations in one unit of work.
    Subclasses declare their own ``_active_conn`` so different DAOs never
    share a session by accident.
    """

    _active_conn: ClassVar[ContextVar[AsyncSession]]

    def __init__(self, pool: async_sessionmaker[AsyncSession]) -> None:
        self._pool = pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Open a unit of work. All DAO calls inside share one connection.

        Raises:
            StorageError: If any database call inside the block fails. The
                session is closed without committing.
        """
        async with self._pool() as connection:
            context_token = self._active_conn.set(connection)
            try:
                yield
            except SQLAlchemyError as error:
                raise StorageError(str(error)) from error
            finally:
                self._active_conn.reset(context_token)

    def _conn(self) -> AsyncSession:
        """Return the current unit-of-work connection."""
        return self._active_conn.get()

    async def commit(self) -> None:
        """Commit the current transaction."""
        await self._conn().commit()
