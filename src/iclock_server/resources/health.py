"""Health resource — liveness plus a storage round trip."""

from __future__ import annotations

from iclock_server.services.queue_service import QueueService


class HealthResource:
    """Health check operations."""

    def __init__(self, *, queue_service: QueueService) -> None:
        self._queue = queue_service

    async def check(self) -> dict[str, str | int]:
        """Return server health and the current Global Queue depth.

        Raises:
            StorageError: If the queue cannot be read.
        """
        queued = await self._queue.list_queue()
        return {"status": "ok", "queued": len(queued)}
