"""Health check controller — thin HTTP adapter."""

from __future__ import annotations

from litestar import Controller, get
from litestar.exceptions import HTTPException

from iclock_server.resources.health import HealthResource
from iclock_server.utils.db import StorageError


class HealthController(Controller):
    """HTTP adapter for health checks."""

    path = "/api"

    @get("/health")
    async def health(
        self, health_resource: HealthResource,
    ) -> dict[str, str | int]:
        """Return server health status; 503 when storage is unreachable."""
        try:
            return await health_resource.check()
        except StorageError as error:
            raise HTTPException(
                status_code=503, detail="storage unavailable",
            ) from error
