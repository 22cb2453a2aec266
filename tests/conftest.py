"""Shared fixtures for iclock_server tests."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from iclock_server.app import create_app
from iclock_server.config import Settings
from iclock_server.dao.command_log_dao import CommandLogDAO
from iclock_server.dao.device_dao import DeviceDAO
from iclock_server.dao.queue_dao import QueueDAO
from iclock_server.dao.user_dao import UserDAO
from iclock_server.services.delivery_service import DeliveryService
from iclock_server.services.device_service import DeviceService
from iclock_server.services.queue_service import QueueService
from iclock_server.services.result_service import ResultService
from iclock_server.services.user_service import UserService
from iclock_server.utils.db import Database


@pytest.fixture()
def settings() -> Settings:
    """Test settings with in-memory SQLite."""
    return Settings(
        database_url="sqlite+aiosqlite://",
        log_level="WARNING",
        max_delivery_attempts=2,
    )


@pytest.fixture()
async def client(settings: Settings) -> AsyncIterator[httpx.AsyncClient]:
    """Async HTTP client wired to the test app with lifespan managed."""
    app = create_app(settings)

    @asynccontextmanager
    async def _lifespan() -> AsyncIterator[None]:
        await Database.create_tables()
        yield
        await Database.close()

    async with _lifespan(), httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# --- service-level fixtures, no HTTP ---


@pytest.fixture()
async def pool() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Fresh in-memory database with all tables."""
    session_pool = Database.init("sqlite+aiosqlite://")
    await Database.create_tables()
    yield session_pool
    await Database.close()


@pytest.fixture()
def queue_dao(pool: async_sessionmaker[AsyncSession]) -> QueueDAO:
    return QueueDAO(pool)


@pytest.fixture()
def log_dao(pool: async_sessionmaker[AsyncSession]) -> CommandLogDAO:
    return CommandLogDAO(pool)


@pytest.fixture()
def queue_service(queue_dao: QueueDAO, log_dao: CommandLogDAO) -> QueueService:
    return QueueService(queue_dao, log_dao, retry_limit=3)


@pytest.fixture()
def delivery_service(queue_dao: QueueDAO, log_dao: CommandLogDAO) -> DeliveryService:
    return DeliveryService(queue_dao, log_dao, max_attempts=2)


@pytest.fixture()
def result_service(log_dao: CommandLogDAO) -> ResultService:
    return ResultService(log_dao, success_code="0")


@pytest.fixture()
def user_service(
    pool: async_sessionmaker[AsyncSession], queue_service: QueueService,
) -> UserService:
    return UserService(UserDAO(pool), queue_service)


@pytest.fixture()
def device_service(
    pool: async_sessionmaker[AsyncSession],
    user_service: UserService,
    queue_service: QueueService,
) -> DeviceService:
    return DeviceService(DeviceDAO(pool), user_service, queue_service)


async def log_rows(log_dao: CommandLogDAO, command_id: str) -> list[tuple[str | None, str]]:
    """``(device_sn, status)`` for every log row of a command."""
    async with log_dao.transaction():
        entries = await log_dao.find_by_command_id(command_id)
    return [(e.device_sn, e.status) for e in entries]
