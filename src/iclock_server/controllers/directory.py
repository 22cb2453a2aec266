"""Directory controller — thin HTTP adapter for DirectoryResource."""

from __future__ import annotations

from typing import Any

from litestar import Controller, delete, get, post, put
from litestar.exceptions import HTTPException

from iclock_server.resources.directory import DirectoryResource
from iclock_server.resources.iclock import MalformedInputError
from iclock_server.services.user_service import (
    UserAlreadyExistsError,
    UserNotFoundError,
)


class DirectoryController(Controller):
    """Operator endpoints for enrolled users and known terminals."""

    path = "/api"

    @get("/users")
    async def list_users(
        self, directory_resource: DirectoryResource,
    ) -> list[dict[str, object]]:
        """List every enrolled user."""
        return await directory_resource.list_users()

    @post("/users", status_code=201)
    async def create_user(
        self,
        data: dict[str, Any],
        directory_resource: DirectoryResource,
    ) -> dict[str, object]:
        """Register a user and queue enrollment on every terminal.

        Body: {"pin": "7", "name": "Ann", "photo": "<base64 jpeg>"}
        """
        try:
            return await directory_resource.create_user(data)
        except MalformedInputError as error:
            raise HTTPException(status_code=400, detail=str(error)) from error
        except UserAlreadyExistsError as error:
            raise HTTPException(status_code=409, detail=str(error)) from error

    @get("/users/{pin:str}")
    async def get_user(
        self, pin: str, directory_resource: DirectoryResource,
    ) -> dict[str, object]:
        """Return one user."""
        try:
            return await directory_resource.get_user(pin)
        except MalformedInputError as error:
            raise HTTPException(status_code=400, detail=str(error)) from error
        except UserNotFoundError as error:
            raise HTTPException(status_code=404, detail=str(error)) from error

    @put("/users/{pin:str}")
    async def update_user(
        self,
        pin: str,
        data: dict[str, Any],
        directory_resource: DirectoryResource,
    ) -> dict[str, object]:
        """Change a user's name and/or photo."""
        try:
            return await directory_resource.update_user(pin, data)
        except MalformedInputError as error:
            raise HTTPException(status_code=400, detail=str(error)) from error
        except UserNotFoundError as error:
            raise HTTPException(status_code=404, detail=str(error)) from error

    @delete("/users/{pin:str}", status_code=200)
    async def delete_user(
        self, pin: str, directory_resource: DirectoryResource,
    ) -> dict[str, str]:
        """Delete a user and queue removal from every terminal."""
        try:
            return await directory_resource.delete_user(pin)
        except MalformedInputError as error:
            raise HTTPException(status_code=400, detail=str(error)) from error
        except UserNotFoundError as error:
            raise HTTPException(status_code=404, detail=str(error)) from error

    @get("/devices")
    async def list_devices(
        self, directory_resource: DirectoryResource,
    ) -> list[dict[str, object]]:
        """List every terminal that has checked in."""
        return await directory_resource.list_devices()
