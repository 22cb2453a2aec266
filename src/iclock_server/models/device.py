"""Terminal device registry model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from iclock_server.utils.db import Base
from iclock_server.utils.time import Time


class Device(Base):
    """A terminal that has checked in at least once, keyed by serial number."""

    __tablename__ = "devices"

    serial_number: Mapped[str] = mapped_column(String(64), primary_key=True)
    push_version: Mapped[str | None] = mapped_column(String(32), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    first_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=Time.now,
    )
    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=Time.now,
    )
    last_poll_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    # Null until the user directory has been queued for this device.
    seeded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
