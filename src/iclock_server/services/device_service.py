"""Business logic for the terminal registry."""

from __future__ import annotations

import logging

from iclock_server.dao.device_dao import DeviceDAO
from iclock_server.models.device import Device
from iclock_server.services.queue_service import QueueService
from iclock_server.services.user_service import UserService
from iclock_server.utils.time import Time

logger = logging.getLogger("iclock.devices")


class DeviceService:
    """Tracks which terminals exist and seeds newly discovered ones.

    Each method wraps its DAO calls in a transaction, one unit of work
    per service call.
    """

    def __init__(
        self,
        device_dao: DeviceDAO,
        user_service: UserService,
        queue_service: QueueService,
        *,
        seed_new_devices: bool = True,
    ) -> None:
        self._dao = device_dao
        self._users = user_service
        self._queue = queue_service
        self._seed_new_devices = seed_new_devices

    async def seen(
        self,
        serial_number: str,
        *,
        push_version: str | None = None,
        polled: bool = False,
        ip_address: str | None = None,
    ) -> bool:
        """Record that a device made contact. Returns True the first time.

        While seeding is enabled, every contact from a device whose user
        directory has not been queued yet retries the bulk enrollment, so a
        failed seed is picked up on the next check-in or poll.

        Raises:
            StorageError: If the registry or the queue cannot be written.
            QueueConflictError: If the seed lost every queue write retry.
        """
        now = Time.now()
        async with self._dao.transaction():
            device = await self._dao.find_by_serial(serial_number)
            if device is None:
                await self._dao.create_device(
                    serial_number=serial_number,
                    push_version=push_version,
                    ip_address=ip_address,
                    seen_at=now,
                )
                needs_seed = True
            else:
                if push_version and device.push_version != push_version:
                    device.push_version = push_version
                needs_seed = device.seeded_at is None
            await self._dao.touch(
                serial_number, seen_at=now, polled=polled, ip_address=ip_address,
            )
            await self._dao.commit()

        is_new = device is None
        if is_new:
            logger.info("Discovered device %s", serial_number)
        if needs_seed and self._seed_new_devices:
            await self._seed(serial_number)
        return is_new

    async def list_devices(self) -> list[dict[str, object]]:
        """Every known device, most recently seen first."""
        async with self._dao.transaction():
            devices = await self._dao.list_all()
        return [DeviceService._device_to_dict(d) for d in devices]

    async def _seed(self, serial_number: str) -> None:
        """Queue enrollment commands for every directory user.

        ``seeded_at`` is only set once the queue write has landed.
        """
        payloads = await self._users.seed_payloads()
        records = await self._queue.enqueue(payloads)
        async with self._dao.transaction():
            await self._dao.mark_seeded(serial_number, Time.now())
            await self._dao.commit()
        logger.info(
            "Seeded %d enrollment command(s) for device %s",
            len(records), serial_number,
        )

    @staticmethod
    def _device_to_dict(device: Device) -> dict[str, object]:
        """Serialize a Device to a JSON-safe dict."""
        return {
            "serial_number": device.serial_number,
            "push_version": device.push_version,
            "ip_address": device.ip_address,
            "first_seen_at": Time.isoformat(device.first_seen_at),
            "last_seen_at": Time.isoformat(device.last_seen_at),
            "last_poll_at": Time.isoformat(device.last_poll_at),
            "seeded_at": Time.isoformat(device.seeded_at),
        }
