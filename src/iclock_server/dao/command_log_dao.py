"""Data access for the per-device command log."""

from __future__ import annotations

import uuid
from contextvars import ContextVar
from datetime import datetime
from typing import Any, ClassVar, cast

from sqlalchemy import CursorResult, and_, case, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from iclock_server.dao.base import BaseDAO
from iclock_server.models.command import (
    EXECUTED,
    FAILED,
    PENDING,
    SENT,
    TERMINAL_STATUSES,
    CommandLogEntry,
)
from iclock_server.schemas.command import CommandRecord
from iclock_server.utils.payload import CommandCategory, DeviceCode

FALLBACK_PREFIX = "unmatched-"


class CommandLogDAO(BaseDAO):
    """Status ledger, one row per (command, device).

    Every status write is a single conditional UPDATE so concurrent polls
    and reports can race without corrupting a row.
    """

    _active_conn: ClassVar[ContextVar[AsyncSession]] = ContextVar("_command_log_dao_conn")

    async def insert_if_absent(self, record: CommandRecord) -> bool:
        """Create the pending row for a command unless one already exists."""
        existing = await self._conn().execute(
            select(CommandLogEntry.id)
            .where(CommandLogEntry.command_id == record.id)
            .limit(1),
        )
        if existing.first() is not None:
            return False
        self._conn().add(CommandLogEntry(
            command_id=record.id,
            payload=record.payload,
            device_code=record.device_code,
            category=record.category.value,
            status=PENDING,
            created_at=record.created_at,
        ))
        await self._conn().flush()
        return True

    async def update_status(
        self,
        command_id: str,
        new_status: str,
        device_sn: str | None,
        timestamp: datetime,
        *,
        expected: tuple[str, ...] = (),
        excluded: tuple[str, ...] = (),
        return_code: str | None = None,
    ) -> bool:
        """Move the (command, device) row to ``new_status``.

        ``expected`` and ``excluded`` guard on the current status. A move to
        ``sent`` counts a new delivery attempt unless the row was already
        sent. Returns False when the guard rejected the write or no row
        exists.
        """
        stmt = update(CommandLogEntry).where(
            CommandLogEntry.command_id == command_id,
            CommandLogEntry.device_sn == device_sn
            if device_sn is not None
            else CommandLogEntry.device_sn.is_(None),
        )
        if expected:
            stmt = stmt.where(CommandLogEntry.status.in_(expected))
        if excluded:
            stmt = stmt.where(CommandLogEntry.status.not_in(excluded))

        values: dict[str, Any] = {"status": new_status}
        if new_status == SENT:
            values["sent_at"] = timestamp
            values["attempts"] = case(
                (CommandLogEntry.status == SENT, CommandLogEntry.attempts),
                else_=CommandLogEntry.attempts + 1,
            )
        elif new_status in TERMINAL_STATUSES:
            values["executed_at"] = timestamp
            values["return_code"] = return_code

        result = await self._conn().execute(
            stmt.values(**values).execution_options(synchronize_session=False),
        )
        return cast(CursorResult[Any], result).rowcount > 0

    async def mark_sent(
        self, record: CommandRecord, device_sn: str, timestamp: datetime,
    ) -> bool:
        """Record delivery of a command to a device.

        Order of preference: re-offer the device's own row (never once
        executed), claim the command's unowned pending row, or open a new
        row for this device.
        """
        if await self.update_status(
            record.id, SENT, device_sn, timestamp, excluded=(EXECUTED,),
        ):
            return True

        claimed = await self._conn().execute(
            update(CommandLogEntry)
            .where(
                CommandLogEntry.command_id == record.id,
                CommandLogEntry.device_sn.is_(None),
                CommandLogEntry.status == PENDING,
            )
            .values(device_sn=device_sn, status=SENT, sent_at=timestamp, attempts=1)
            .execution_options(synchronize_session=False),
        )
        if cast(CursorResult[Any], claimed).rowcount > 0:
            return True

        if await self.find_entry(record.id, device_sn) is not None:
            return False

        self._conn().add(CommandLogEntry(
            command_id=record.id,
            device_sn=device_sn,
            payload=record.payload,
            device_code=record.device_code,
            category=record.category.value,
            status=SENT,
            attempts=1,
            created_at=record.created_at,
            sent_at=timestamp,
        ))
        await self._conn().flush()
        return True

    async def find_entry(
        self, command_id: str, device_sn: str,
    ) -> CommandLogEntry | None:
        """Return the row for one command on one device."""
        result = await self._conn().execute(
            select(CommandLogEntry).where(
                CommandLogEntry.command_id == command_id,
                CommandLogEntry.device_sn == device_sn,
            ),
        )
        return result.scalar_one_or_none()

    async def find_processed_ids(
        self, device_sn: str, max_attempts: int = 1,
    ) -> set[str]:
        """Ids this device must not be offered again.

        Sent and executed rows always count. Failed rows count once their
        attempts are used up; before that they are offered again.
        """
        result = await self._conn().execute(
            select(CommandLogEntry.command_id).where(
                CommandLogEntry.device_sn == device_sn,
                or_(
                    CommandLogEntry.status.in_((SENT, EXECUTED)),
                    and_(
                        CommandLogEntry.status == FAILED,
                        CommandLogEntry.attempts >= max_attempts,
                    ),
                ),
            ),
        )
        return set(result.scalars())

    async def find_sent_by_device_and_code(
        self, device_sn: str, code: str,
    ) -> list[CommandLogEntry]:
        """Sent rows of the device whose code matches, newest send first."""
        result = await self._conn().execute(
            select(CommandLogEntry)
            .where(
                CommandLogEntry.device_sn == device_sn,
                CommandLogEntry.status == SENT,
                CommandLogEntry.synthetic == False,  # noqa: E712
            )
            .order_by(CommandLogEntry.sent_at.desc(), CommandLogEntry.id.desc()),
        )
        return [
            entry for entry in result.scalars()
            if DeviceCode.matches(entry.device_code, code)
        ]

    async def insert_fallback(
        self,
        code: str,
        device_sn: str,
        status: str,
        timestamp: datetime,
        return_code: str | None = None,
    ) -> CommandLogEntry:
        """Record a result that matched nothing, as a synthetic terminal row."""
        entry = CommandLogEntry(
            command_id=f"{FALLBACK_PREFIX}{uuid.uuid4().hex}",
            device_sn=device_sn,
            payload="",
            device_code=code,
            category=CommandCategory.OTHER.value,
            status=status,
            return_code=return_code,
            synthetic=True,
            created_at=timestamp,
            executed_at=timestamp,
        )
        self._conn().add(entry)
        await self._conn().flush()
        return entry

    async def find_by_command_id(self, command_id: str) -> list[CommandLogEntry]:
        """All rows for a command, in creation order."""
        result = await self._conn().execute(
            select(CommandLogEntry)
            .where(CommandLogEntry.command_id == command_id)
            .order_by(CommandLogEntry.id),
        )
        return list(result.scalars())

    async def list_entries(
        self,
        *,
        device_sn: str | None = None,
        status: str | None = None,
        limit: int = 200,
    ) -> list[CommandLogEntry]:
        """Newest rows first, optionally filtered by device and status."""
        stmt = select(CommandLogEntry)
        if device_sn is not None:
            stmt = stmt.where(CommandLogEntry.device_sn == device_sn)
        if status is not None:
            stmt = stmt.where(CommandLogEntry.status == status)
        stmt = stmt.order_by(CommandLogEntry.id.desc()).limit(limit)
        result = await self._conn().execute(stmt)
        return list(result.scalars())
