"""Tests for device discovery and directory seeding."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from iclock_server.dao.device_dao import DeviceDAO
from iclock_server.services.delivery_service import DeliveryService
from iclock_server.services.device_service import DeviceService
from iclock_server.services.queue_service import QueueService
from iclock_server.services.user_service import UserService
from iclock_server.utils.db import StorageError
from iclock_server.utils.payload import CommandCategory


@pytest.mark.asyncio
async def test_first_contact_seeds_directory(
    user_service: UserService,
    device_service: DeviceService,
    queue_service: QueueService,
    delivery_service: DeliveryService,
) -> None:
    """A new device gets every enrolled user queued for it."""
    await user_service.register_user("7", "Ann", "QUJD")
    await user_service.register_user("8", "Bob")
    before = await queue_service.list_queue()

    assert await device_service.seen("D1") is True
    queued = await queue_service.list_queue()
    assert len(queued) == len(before) == 3
    assert {r.id for r in queued}.isdisjoint({r.id for r in before})
    assert sorted((r.target_user, r.category) for r in queued) == [
        ("7", CommandCategory.USER_PHOTO),
        ("7", CommandCategory.USER_UPSERT),
        ("8", CommandCategory.USER_UPSERT),
    ]

    delivered = [await delivery_service.next_command("D1") for _ in range(4)]
    assert [cid for _, cid in delivered[:3]] == [r.id for r in queued]
    assert delivered[3] == (None, None)


@pytest.mark.asyncio
async def test_repeat_contact_does_not_seed(
    user_service: UserService,
    device_service: DeviceService,
    queue_service: QueueService,
) -> None:
    await device_service.seen("D1")
    await user_service.register_user("7", "Ann")
    queued = await queue_service.list_queue()

    assert await device_service.seen("D1", polled=True) is False
    assert [r.id for r in await queue_service.list_queue()] == [r.id for r in queued]


@pytest.mark.asyncio
async def test_seeding_can_be_disabled(
    pool: async_sessionmaker[AsyncSession],
    user_service: UserService,
    queue_service: QueueService,
) -> None:
    service = DeviceService(
        DeviceDAO(pool), user_service, queue_service, seed_new_devices=False,
    )
    await user_service.register_user("7", "Ann")
    queued = await queue_service.list_queue()

    assert await service.seen("D1") is True
    assert [r.id for r in await queue_service.list_queue()] == [r.id for r in queued]


@pytest.mark.asyncio
async def test_push_version_and_timestamps_tracked(
    device_service: DeviceService,
) -> None:
    await device_service.seen("D1", push_version="2.2.14")
    await device_service.seen("D1", push_version="2.4.1", polled=True)
    devices = await device_service.list_devices()
    assert len(devices) == 1
    assert devices[0]["push_version"] == "2.4.1"
    assert devices[0]["last_poll_at"] is not None


@pytest.mark.asyncio
async def test_failed_seed_is_retried_on_next_contact(
    user_service: UserService,
    device_service: DeviceService,
    queue_service: QueueService,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A device whose seed never landed is seeded on its next contact."""
    await user_service.register_user("7", "Ann")
    before = await queue_service.list_queue()

    async def _broken(payloads: list[str]) -> list[object]:
        raise StorageError("disk full")

    with monkeypatch.context() as patch:
        patch.setattr(queue_service, "enqueue", _broken)
        with pytest.raises(StorageError):
            await device_service.seen("NEW1")

    devices = await device_service.list_devices()
    assert devices[0]["seeded_at"] is None
    assert [r.id for r in await queue_service.list_queue()] == [r.id for r in before]

    assert await device_service.seen("NEW1") is False
    after = await queue_service.list_queue()
    assert len(after) == 1
    assert after[0].id != before[0].id
    assert (await device_service.list_devices())[0]["seeded_at"] is not None

    await device_service.seen("NEW1")
    assert [r.id for r in await queue_service.list_queue()] == [after[0].id]


@pytest.mark.asyncio
async def test_contact_records_ip_address(device_service: DeviceService) -> None:
    await device_service.seen("D1", ip_address="10.0.0.5")
    await device_service.seen("D1", polled=True)
    await device_service.seen("D1", ip_address="10.0.0.6")
    assert (await device_service.list_devices())[0]["ip_address"] == "10.0.0.6"
