"""Logging setup for the server process."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc,
            ).isoformat(),
            "severity": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class LogSetup:
    """Static helpers for configuring process-wide logging."""

    @staticmethod
    def configure(level: str = "INFO", log_format: str = "text") -> None:
        """Install a single stream handler on the root logger.

        Replaces existing handlers so repeated calls (tests, reloads) do not
        duplicate output.
        """
        root = logging.getLogger()
        root.setLevel(level.upper())
        root.handlers.clear()

        handler = logging.StreamHandler()
        if log_format.strip().lower() == "json":
            handler.setFormatter(JsonFormatter())
        else:
            handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
        root.addHandler(handler)
