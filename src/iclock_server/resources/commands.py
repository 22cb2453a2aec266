"""Command resource — operator views of the queue and the command log."""

from __future__ import annotations

from typing import Any

from iclock_server.dao.command_log_dao import CommandLogDAO
from iclock_server.models.command import (
    EXECUTED,
    FAILED,
    PENDING,
    SENT,
    CommandLogEntry,
)
from iclock_server.resources.iclock import MalformedInputError
from iclock_server.schemas.command import CommandRecord
from iclock_server.services.queue_service import QueueService
from iclock_server.utils.time import Time

_STATUSES = (PENDING, SENT, EXECUTED, FAILED)


class CommandNotFoundError(Exception):
    """Raised when the command log has no rows for an id."""


class CommandResource:
    """Enqueue raw payloads and inspect stored state.

    Built once at startup with all dependencies pre-wired.
    """

    def __init__(
        self,
        *,
        queue_service: QueueService,
        log_dao: CommandLogDAO,
        page_limit: int = 200,
    ) -> None:
        self._queue = queue_service
        self._log = log_dao
        self._page_limit = page_limit

    async def enqueue(self, data: dict[str, Any]) -> list[dict[str, Any]]:
        """Queue ``data["payloads"]``.

        Raises:
            MalformedInputError: If payloads is not a list of non-empty strings.
        """
        payloads = data.get("payloads")
        if not isinstance(payloads, list) or not all(
            isinstance(p, str) and p.strip() for p in payloads
        ):
            raise MalformedInputError("'payloads' must be a list of non-empty strings")
        records = await self._queue.enqueue([p.strip() for p in payloads])
        return [CommandResource._record_to_dict(r) for r in records]

    async def list_queue(self) -> list[dict[str, Any]]:
        """The Global Queue in delivery order."""
        records = await self._queue.list_queue()
        return [CommandResource._record_to_dict(r) for r in records]

    async def clear_queue(self) -> dict[str, int]:
        """Empty the Global Queue."""
        return {"cleared": await self._queue.clear()}

    async def list_log(
        self,
        device: str | None = None,
        status: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Newest log rows first.

        Raises:
            MalformedInputError: If status is unknown or limit is not positive.
        """
        if status is not None and status not in _STATUSES:
            raise MalformedInputError(f"Unknown status '{status}'")
        if limit is not None and limit < 1:
            raise MalformedInputError("limit must be positive")
        page = min(limit or self._page_limit, self._page_limit)
        async with self._log.transaction():
            entries = await self._log.list_entries(
                device_sn=device or None, status=status, limit=page,
            )
        return [CommandResource._entry_to_dict(e) for e in entries]

    async def command_log(self, command_id: str) -> list[dict[str, Any]]:
        """Every device row for one command.

        Raises:
            CommandNotFoundError: If the id was never logged.
        """
        async with self._log.transaction():
            entries = await self._log.find_by_command_id(command_id)
        if not entries:
            raise CommandNotFoundError(f"Command {command_id} not found")
        return [CommandResource._entry_to_dict(e) for e in entries]

    @staticmethod
    def _record_to_dict(record: CommandRecord) -> dict[str, Any]:
        """Serialize a queued record for operator views."""
        return record.model_dump(mode="json")

    @staticmethod
    def _entry_to_dict(entry: CommandLogEntry) -> dict[str, Any]:
        """Serialize a log row for operator views."""
        return {
            "command_id": entry.command_id,
            "device_sn": entry.device_sn,
            "device_code": entry.device_code,
            "category": entry.category,
            "status": entry.status,
            "return_code": entry.return_code,
            "attempts": entry.attempts,
            "synthetic": entry.synthetic,
            "payload": entry.payload,
            "created_at": Time.isoformat(entry.created_at),
            "sent_at": Time.isoformat(entry.sent_at),
            "executed_at": Time.isoformat(entry.executed_at),
        }
