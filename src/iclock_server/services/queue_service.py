"""Business logic for accepting commands into the Global Queue."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from iclock_server.dao.command_log_dao import CommandLogDAO
from iclock_server.dao.queue_dao import QueueConflictError, QueueDAO
from iclock_server.schemas.command import CommandRecord
from iclock_server.utils.db import StorageError

logger = logging.getLogger("iclock.queue")


class QueueService:
    """Appends commands, superseding stale ones per (user, category).

    Built once at startup. Writers in this process are serialised by a lock;
    writers in other processes are caught by the versioned replace and
    retried.
    """

    def __init__(
        self,
        queue_dao: QueueDAO,
        log_dao: CommandLogDAO,
        *,
        retry_limit: int = 5,
    ) -> None:
        self._queue = queue_dao
        self._log = log_dao
        self._retry_limit = max(1, retry_limit)
        self._lock = asyncio.Lock()

    async def enqueue(self, payloads: list[str]) -> list[CommandRecord]:
        """Queue raw payloads and return the records created for them.

        Raises:
            StorageError: If the queue could not be persisted. No log rows
                are written in that case.
            QueueConflictError: If concurrent writers won every retry.
        """
        if not payloads:
            return []
        records = [CommandRecord.from_payload(payload) for payload in payloads]

        async with self._lock:
            current, updated = await self._replace_with_retry(
                lambda queued: QueueService.apply_supersession(queued, records)
                + records,
            )

        superseded = len(current) + len(records) - len(updated)
        if superseded:
            logger.info("Superseded %d queued command(s)", superseded)
        await self._log_pending(records)
        return records

    async def clear(self) -> int:
        """Drop every queued record and return how many were removed.

        Log rows are kept; rows of commands that never reached a device stay
        ``pending``.

        Raises:
            StorageError: If the queue could not be persisted.
            QueueConflictError: If concurrent writers won every retry.
        """
        async with self._lock:
            current, _ = await self._replace_with_retry(lambda queued: [])
        if current:
            logger.info("Cleared %d queued command(s)", len(current))
        return len(current)

    async def list_queue(self) -> list[CommandRecord]:
        """Current Global Queue, in delivery order."""
        async with self._queue.transaction():
            return await self._queue.load()

    async def _replace_with_retry(
        self,
        build: Callable[[list[CommandRecord]], list[CommandRecord]],
    ) -> tuple[list[CommandRecord], list[CommandRecord]]:
        """Load-modify-replace until the versioned write lands.

        Returns the list that was replaced and the list that replaced it.
        """
        for attempt in range(1, self._retry_limit + 1):
            try:
                async with self._queue.transaction():
                    current, version = await self._queue.load_versioned()
                    updated = build(current)
                    await self._queue.replace(updated, expected_version=version)
                    await self._queue.commit()
                return current, updated
            except QueueConflictError:
                logger.warning(
                    "Command queue write conflict (attempt %d/%d)",
                    attempt, self._retry_limit,
                )
        raise QueueConflictError(
            f"Command queue still contended after {self._retry_limit} attempts",
        )

    async def _log_pending(self, records: list[CommandRecord]) -> None:
        """Best effort: delivery re-creates missing rows on first send."""
        try:
            async with self._log.transaction():
                for record in records:
                    await self._log.insert_if_absent(record)
                await self._log.commit()
        except StorageError:
            logger.exception(
                "Command log write failed for %d queued command(s); "
                "rows will be created on first delivery",
                len(records),
            )

    @staticmethod
    def apply_supersession(
        current: list[CommandRecord], incoming: list[CommandRecord],
    ) -> list[CommandRecord]:
        """Drop queued records replaced by an incoming one, keeping order."""
        return [
            queued for queued in current
            if not any(new.supersedes(queued) for new in incoming)
        ]
