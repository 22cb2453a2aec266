"""Data access for the Global Queue document."""

from __future__ import annotations

import json
from contextvars import ContextVar
from typing import Any, ClassVar, cast

from pydantic import ValidationError
from sqlalchemy import CursorResult, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from iclock_server.dao.base import BaseDAO
from iclock_server.models.command import GLOBAL_QUEUE, CommandQueueDocument
from iclock_server.schemas.command import CommandRecord
from iclock_server.utils.db import StorageError
from iclock_server.utils.time import Time


class QueueConflictError(Exception):
    """Raised when a versioned replace loses to a concurrent writer."""


class QueueDAO(BaseDAO):
    """Load and atomically replace the ordered command list.

    The whole list is one row, so a replace is a single-statement write:
    readers see either the old list or the new one.
    """

    _active_conn: ClassVar[ContextVar[AsyncSession]] = ContextVar("_queue_dao_conn")

    async def _find(self) -> CommandQueueDocument | None:
        result = await self._conn().execute(
            select(CommandQueueDocument).where(
                CommandQueueDocument.name == GLOBAL_QUEUE,
            ),
        )
        return result.scalar_one_or_none()

    async def load(self) -> list[CommandRecord]:
        """Return the queued records in order. Empty if never written."""
        records, _ = await self.load_versioned()
        return records

    async def load_versioned(self) -> tuple[list[CommandRecord], int]:
        """Return ``(records, version)``; version 0 means never written.

        Raises:
            StorageError: If the stored document cannot be decoded.
        """
        document = await self._find()
        if document is None:
            return [], 0
        try:
            items = json.loads(document.commands or "[]")
            records = [CommandRecord.model_validate(item) for item in items]
        except (ValueError, ValidationError) as error:
            raise StorageError(f"Corrupt command queue: {error}") from error
        return records, document.version

    async def replace(
        self,
        records: list[CommandRecord],
        expected_version: int | None = None,
    ) -> int:
        """Overwrite the stored list and return the new version.

        With ``expected_version`` the write only lands if nobody replaced
        the list since it was loaded.

        Raises:
            QueueConflictError: If ``expected_version`` is stale.
        """
        body = json.dumps([record.model_dump(mode="json") for record in records])
        now = Time.now()

        if expected_version is None:
            document = await self._find()
            if document is None:
                return await self._create(body)
            document.commands = body
            document.version += 1
            document.updated_at = now
            await self._conn().flush()
            return document.version

        if expected_version == 0:
            try:
                return await self._create(body)
            except IntegrityError as error:
                raise QueueConflictError("Command queue was created concurrently") from error

        result = await self._conn().execute(
            update(CommandQueueDocument)
            .where(
                CommandQueueDocument.name == GLOBAL_QUEUE,
                CommandQueueDocument.version == expected_version,
            )
            .values(commands=body, version=expected_version + 1, updated_at=now),
        )
        if cast(CursorResult[Any], result).rowcount != 1:
            raise QueueConflictError(
                f"Command queue changed since version {expected_version}",
            )
        return expected_version + 1

    async def _create(self, body: str) -> int:
        """Insert the document for the first time."""
        document = CommandQueueDocument(
            name=GLOBAL_QUEUE, commands=body, version=1, updated_at=Time.now(),
        )
        self._conn().add(document)
        await self._conn().flush()
        return 1
