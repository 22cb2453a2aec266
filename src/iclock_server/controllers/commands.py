"""Command controller — thin HTTP adapter for CommandResource."""

from __future__ import annotations

from typing import Any

from litestar import Controller, delete, get, post
from litestar.exceptions import HTTPException

from iclock_server.resources.commands import CommandNotFoundError, CommandResource
from iclock_server.resources.iclock import MalformedInputError


class CommandController(Controller):
    """Operator endpoints for queueing and inspecting commands."""

    path = "/api/commands"

    @post("/", status_code=201)
    async def enqueue(
        self,
        data: dict[str, Any],
        command_resource: CommandResource,
    ) -> list[dict[str, Any]]:
        """Queue raw payloads.

        Body: {"payloads": ["C:X01:DATA UPDATE USERINFO PIN=7\\tName=Ann"]}
        """
        try:
            return await command_resource.enqueue(data)
        except MalformedInputError as error:
            raise HTTPException(status_code=400, detail=str(error)) from error

    @get("/queue")
    async def list_queue(
        self, command_resource: CommandResource,
    ) -> list[dict[str, Any]]:
        """Global Queue in delivery order."""
        return await command_resource.list_queue()

    @delete("/queue", status_code=200)
    async def clear_queue(
        self, command_resource: CommandResource,
    ) -> dict[str, int]:
        """Drop every queued command. Log history is kept."""
        return await command_resource.clear_queue()

    @get("/log")
    async def list_log(
        self,
        command_resource: CommandResource,
        device: str | None = None,
        status: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Command log rows, newest first."""
        try:
            return await command_resource.list_log(device, status, limit)
        except MalformedInputError as error:
            raise HTTPException(status_code=400, detail=str(error)) from error

    @get("/log/{command_id:str}")
    async def command_log(
        self,
        command_id: str,
        command_resource: CommandResource,
    ) -> list[dict[str, Any]]:
        """Every device row for one command."""
        try:
            return await command_resource.command_log(command_id)
        except CommandNotFoundError as error:
            raise HTTPException(status_code=404, detail=str(error)) from error
