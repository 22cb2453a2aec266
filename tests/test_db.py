"""Tests for database module edge cases."""

import os

import pytest

from iclock_server.models.device import Device
from iclock_server.models.user import User
from iclock_server.utils.db import Database
from iclock_server.utils.time import Time


@pytest.mark.asyncio
async def test_close_when_not_initialized() -> None:
    """Database.close is a no-op when engine is None."""
    await Database.close()


@pytest.mark.asyncio
async def test_init_returns_working_pool() -> None:
    """Pool creates a working database connection."""
    pool = Database.init("sqlite+aiosqlite://")
    await Database.create_tables()
    async with pool() as db:
        assert db is not None
    await Database.close()


@pytest.mark.asyncio
async def test_init_file_based(tmp_path: object) -> None:
    """A file-based SQLite URL uses standard pooling."""
    db_path = os.path.join(str(tmp_path), "test.db")
    pool = Database.init(f"sqlite+aiosqlite:///{db_path}")
    await Database.create_tables()
    async with pool() as db:
        assert db is not None
    await Database.close()
    os.unlink(db_path)


@pytest.mark.asyncio
async def test_models_create_user_and_device() -> None:
    """User and Device models can be inserted and queried."""
    pool = Database.init("sqlite+aiosqlite://")
    await Database.create_tables()
    now = Time.now()
    async with pool() as db:
        db.add(User(pin="7", name="Ann", created_at=now, updated_at=now))
        db.add(Device(serial_number="D1", first_seen_at=now, last_seen_at=now))
        await db.commit()
        user = await db.get(User, "7")
        device = await db.get(Device, "D1")
        assert user is not None
        assert user.photo is None
        assert device is not None
        assert device.last_poll_at is None
    await Database.close()
