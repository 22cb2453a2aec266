"""Global command queue document and per-device command log models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from iclock_server.utils.db import Base
from iclock_server.utils.time import Time

GLOBAL_QUEUE = "global"

PENDING = "pending"
SENT = "sent"
EXECUTED = "executed"
FAILED = "failed"
TERMINAL_STATUSES = (EXECUTED, FAILED)


class CommandQueueDocument(Base):
    """The Global Queue, stored whole as one JSON list per queue name.

    ``version`` increments on every replace and backs compare-and-swap writes.
    """

    __tablename__ = "command_queue"

    name: Mapped[str] = mapped_column(String(32), primary_key=True)
    commands: Mapped[str] = mapped_column(Text, default="[]")  # JSON list
    version: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=Time.now,
    )


class CommandLogEntry(Base):
    """Lifecycle of one command on one device.

    Lifecycle: pending -> sent -> executed | failed. The pending row has no
    device; the first device to receive the command claims it, and every
    further device gets a row of its own.
    """

    __tablename__ = "command_log"
    __table_args__ = (
        UniqueConstraint("command_id", "device_sn", name="uq_command_log_command_device"),
        Index("ix_command_log_device_status", "device_sn", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    command_id: Mapped[str] = mapped_column(String(64), index=True)
    device_sn: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payload: Mapped[str] = mapped_column(Text)
    device_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    category: Mapped[str] = mapped_column(String(16), default="OTHER")
    status: Mapped[str] = mapped_column(String(16), default=PENDING)
    return_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    synthetic: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=Time.now,
    )
    sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    executed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
