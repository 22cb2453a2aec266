"""Data access for the enrolled user directory."""

from __future__ import annotations

from contextvars import ContextVar
from typing import ClassVar

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from iclock_server.dao.base import BaseDAO
from iclock_server.models.user import User
from iclock_server.utils.time import Time


class UserDAO(BaseDAO):
    """Data access for enrolled users."""

    _active_conn: ClassVar[ContextVar[AsyncSession]] = ContextVar("_user_dao_conn")

    async def find_by_pin(self, pin: str) -> User | None:
        """Find a user by device PIN."""
        result = await self._conn().execute(select(User).where(User.pin == pin))
        return result.scalar_one_or_none()

    async def list_all(self) -> list[User]:
        """Return every user, ordered by PIN."""
        result = await self._conn().execute(select(User).order_by(User.pin))
        return list(result.scalars())

    async def create_user(
        self, *, pin: str, name: str, photo: str | None,
    ) -> User:
        """Insert a new user."""
        user = User(pin=pin, name=name, photo=photo)
        self._conn().add(user)
        await self._conn().flush()
        return user

    async def update_user(
        self, user: User, *, name: str | None, photo: str | None,
    ) -> User:
        """Apply changed fields and bump updated_at."""
        if name is not None:
            user.name = name
        if photo is not None:
            user.photo = photo
        user.updated_at = Time.now()
        await self._conn().flush()
        return user

    async def delete_user(self, pin: str) -> None:
        """Remove a user row."""
        await self._conn().execute(delete(User).where(User.pin == pin))
