"""Enrolled user directory model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from iclock_server.utils.db import Base
from iclock_server.utils.time import Time


class User(Base):
    """A person enrolled on the terminals. ``pin`` is the device-side user id."""

    __tablename__ = "users"

    pin: Mapped[str] = mapped_column(String(24), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    photo: Mapped[str | None] = mapped_column(Text, nullable=True)  # base64 JPEG
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=Time.now,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=Time.now,
    )
