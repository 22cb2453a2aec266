"""Data access for the terminal registry."""

from __future__ import annotations

from contextvars import ContextVar
from datetime import datetime
from typing import ClassVar

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from iclock_server.dao.base import BaseDAO
from iclock_server.models.device import Device


class DeviceDAO(BaseDAO):
    """Data access for registered terminals."""

    _active_conn: ClassVar[ContextVar[AsyncSession]] = ContextVar("_device_dao_conn")

    async def find_by_serial(self, serial_number: str) -> Device | None:
        """Find a device by serial number."""
        result = await self._conn().execute(
            select(Device).where(Device.serial_number == serial_number),
        )
        return result.scalar_one_or_none()

    async def create_device(
        self,
        *,
        serial_number: str,
        push_version: str | None,
        ip_address: str | None,
        seen_at: datetime,
    ) -> Device:
        """Insert a newly discovered device."""
        device = Device(
            serial_number=serial_number,
            push_version=push_version,
            ip_address=ip_address,
            first_seen_at=seen_at,
            last_seen_at=seen_at,
        )
        self._conn().add(device)
        await self._conn().flush()
        return device

    async def touch(
        self,
        serial_number: str,
        *,
        seen_at: datetime,
        polled: bool = False,
        ip_address: str | None = None,
    ) -> None:
        """Update last-seen (and last-poll) timestamps and the last address."""
        values: dict[str, datetime | str] = {"last_seen_at": seen_at}
        if polled:
            values["last_poll_at"] = seen_at
        if ip_address:
            values["ip_address"] = ip_address
        await self._conn().execute(
            update(Device)
            .where(Device.serial_number == serial_number)
            .values(**values),
        )

    async def mark_seeded(self, serial_number: str, seeded_at: datetime) -> None:
        """Record that the user directory was queued for the device."""
        await self._conn().execute(
            update(Device)
            .where(Device.serial_number == serial_number)
            .values(seeded_at=seeded_at),
        )

    async def list_all(self) -> list[Device]:
        """Return every device, most recently seen first."""
        result = await self._conn().execute(
            select(Device).order_by(Device.last_seen_at.desc()),
        )
        return list(result.scalars())
