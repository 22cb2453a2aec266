"""Command queue schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from iclock_server.utils.payload import CommandCategory, CommandPayload
from iclock_server.utils.time import Time


class CommandRecord(BaseModel):
    """One queued unit of work, parsed once from its payload text."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    payload: str
    device_code: str | None = None
    category: CommandCategory = CommandCategory.OTHER
    target_user: str | None = None
    created_at: datetime = Field(default_factory=Time.now)

    @classmethod
    def from_payload(cls, payload: str) -> CommandRecord:
        """Build a record with a fresh id and routing metadata."""
        category, target_user = CommandPayload.routing(payload)
        return cls(
            payload=payload,
            device_code=CommandPayload.device_code(payload),
            category=category,
            target_user=target_user,
        )

    def supersedes(self, other: CommandRecord) -> bool:
        """Latest wins per (target user, category)."""
        return (
            self.target_user is not None
            and self.target_user == other.target_user
            and self.category == other.category
        )
