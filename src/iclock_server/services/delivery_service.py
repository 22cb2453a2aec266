"""Business logic for handing queued commands to polling devices."""

from __future__ import annotations

import logging

from iclock_server.dao.command_log_dao import CommandLogDAO
from iclock_server.dao.queue_dao import QueueDAO
from iclock_server.utils.time import Time

logger = logging.getLogger("iclock.delivery")


class DeliveryService:
    """Per-device FIFO view over the Global Queue.

    A command sits once in the global list and is independently "first
    unseen" for every device, so each device receives it exactly once.
    """

    def __init__(
        self,
        queue_dao: QueueDAO,
        log_dao: CommandLogDAO,
        *,
        max_attempts: int = 1,
    ) -> None:
        self._queue = queue_dao
        self._log = log_dao
        self._max_attempts = max(1, max_attempts)

    async def next_command(
        self, device_sn: str,
    ) -> tuple[str | None, str | None]:
        """Return ``(payload, command_id)`` for the device, or ``(None, None)``.

        Raises:
            StorageError: If the queue or the log cannot be read or written.
        """
        async with self._queue.transaction():
            queued = await self._queue.load()
        if not queued:
            return None, None

        async with self._log.transaction():
            processed = await self._log.find_processed_ids(
                device_sn, self._max_attempts,
            )
            record = next((r for r in queued if r.id not in processed), None)
            if record is None:
                return None, None

            if await self._log.insert_if_absent(record):
                logger.warning(
                    "consistency: command %s had no log row; created on delivery",
                    record.id,
                )
            changed = await self._log.mark_sent(record, device_sn, Time.now())
            await self._log.commit()

        if changed:
            logger.info(
                "Delivered command %s (code %s) to %s",
                record.id, record.device_code, device_sn,
            )
        else:
            logger.warning(
                "Command %s was finalised on %s by a concurrent request",
                record.id, device_sn,
            )
        return record.payload, record.id
