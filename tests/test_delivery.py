"""Tests for per-device delivery out of the Global Queue."""

from __future__ import annotations

import pytest

from iclock_server.dao.command_log_dao import CommandLogDAO
from iclock_server.dao.queue_dao import QueueDAO
from iclock_server.models.command import EXECUTED, FAILED, SENT
from iclock_server.schemas.command import CommandRecord
from iclock_server.services.delivery_service import DeliveryService
from iclock_server.services.queue_service import QueueService
from iclock_server.services.result_service import ResultService
from tests.conftest import log_rows


@pytest.mark.asyncio
async def test_empty_queue_returns_none(delivery_service: DeliveryService) -> None:
    assert await delivery_service.next_command("D1") == (None, None)


@pytest.mark.asyncio
async def test_exactly_once_per_device(
    queue_service: QueueService,
    delivery_service: DeliveryService,
    log_dao: CommandLogDAO,
) -> None:
    """A device never receives the same command twice."""
    record, = await queue_service.enqueue(["C:X01:DATA USER PIN=7 Name=Ann"])

    assert await delivery_service.next_command("D1") == (record.payload, record.id)
    assert await delivery_service.next_command("D1") == (None, None)
    assert await log_rows(log_dao, record.id) == [("D1", SENT)]


@pytest.mark.asyncio
async def test_fifo_order(
    queue_service: QueueService, delivery_service: DeliveryService,
) -> None:
    """Each device walks the queue front to back."""
    records = await queue_service.enqueue(["C:A1:REBOOT", "C:A2:CHECK", "C:A3:INFO"])
    delivered = [(await delivery_service.next_command("D1"))[1] for _ in records]
    assert delivered == [r.id for r in records]


@pytest.mark.asyncio
async def test_broadcast_reaches_every_device(
    queue_service: QueueService,
    delivery_service: DeliveryService,
    log_dao: CommandLogDAO,
) -> None:
    """One queued command is delivered once to each polling device."""
    record, = await queue_service.enqueue(["C:B1:REBOOT"])
    for device in ("D1", "D2", "D3"):
        assert await delivery_service.next_command(device) == (record.payload, record.id)
    for device in ("D1", "D2", "D3"):
        assert await delivery_service.next_command(device) == (None, None)

    rows = await log_rows(log_dao, record.id)
    assert sorted(rows) == [("D1", SENT), ("D2", SENT), ("D3", SENT)]


@pytest.mark.asyncio
async def test_devices_progress_independently(
    queue_service: QueueService, delivery_service: DeliveryService,
) -> None:
    first, second = await queue_service.enqueue(["C:A1:REBOOT", "C:A2:CHECK"])
    assert (await delivery_service.next_command("D1"))[1] == first.id
    assert (await delivery_service.next_command("D1"))[1] == second.id
    assert (await delivery_service.next_command("D2"))[1] == first.id


@pytest.mark.asyncio
async def test_missing_log_row_is_created_on_delivery(
    queue_dao: QueueDAO,
    delivery_service: DeliveryService,
    log_dao: CommandLogDAO,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """A command queued without its log row still delivers and self-heals."""
    record = CommandRecord.from_payload("C:H1:REBOOT")
    async with queue_dao.transaction():
        await queue_dao.replace([record])
        await queue_dao.commit()

    with caplog.at_level("WARNING", logger="iclock.delivery"):
        assert await delivery_service.next_command("D1") == (record.payload, record.id)
    assert "consistency:" in caplog.text
    assert await log_rows(log_dao, record.id) == [("D1", SENT)]


@pytest.mark.asyncio
async def test_failed_delivery_is_retried_until_attempts_run_out(
    queue_service: QueueService,
    delivery_service: DeliveryService,
    result_service: ResultService,
    log_dao: CommandLogDAO,
) -> None:
    """Failed rows are offered again while attempts remain (max 2 here)."""
    record, = await queue_service.enqueue(["C:F1:DATA USER PIN=9 Name=Eve"])

    assert (await delivery_service.next_command("D1"))[1] == record.id
    await result_service.report_result("D1", "F1", "-1")
    assert await log_rows(log_dao, record.id) == [("D1", FAILED)]

    assert (await delivery_service.next_command("D1"))[1] == record.id
    async with log_dao.transaction():
        entry = await log_dao.find_entry(record.id, "D1")
    assert entry is not None
    assert entry.status == SENT
    assert entry.attempts == 2

    await result_service.report_result("D1", "F1", "-1")
    assert await delivery_service.next_command("D1") == (None, None)


@pytest.mark.asyncio
async def test_executed_command_is_never_resent(
    queue_service: QueueService,
    delivery_service: DeliveryService,
    result_service: ResultService,
    log_dao: CommandLogDAO,
) -> None:
    record, = await queue_service.enqueue(["C:E1:REBOOT"])
    await delivery_service.next_command("D1")
    await result_service.report_result("D1", "E1", "0")

    assert await delivery_service.next_command("D1") == (None, None)
    assert await log_rows(log_dao, record.id) == [("D1", EXECUTED)]


@pytest.mark.asyncio
async def test_mark_sent_never_regresses_executed_row(
    queue_service: QueueService,
    delivery_service: DeliveryService,
    result_service: ResultService,
    log_dao: CommandLogDAO,
) -> None:
    """A late duplicate send cannot pull an executed row back to sent."""
    record, = await queue_service.enqueue(["C:E2:REBOOT"])
    await delivery_service.next_command("D1")
    await result_service.report_result("D1", "E2", "0")

    async with log_dao.transaction():
        changed = await log_dao.mark_sent(record, "D1", record.created_at)
        await log_dao.commit()
    assert changed is False
    assert await log_rows(log_dao, record.id) == [("D1", EXECUTED)]
