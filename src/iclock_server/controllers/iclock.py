"""Iclock controller — plain-text endpoints polled by terminals."""

from __future__ import annotations

import logging

from litestar import Controller, MediaType, Request, Response, get, post
from litestar.datastructures import State
from litestar.params import Parameter
from litestar.types import ExceptionHandlersMap

from iclock_server.dao.queue_dao import QueueConflictError
from iclock_server.resources.iclock import IclockResource, MalformedInputError
from iclock_server.utils.db import StorageError

logger = logging.getLogger("iclock.protocol")

_FAILURE_TEXT = "ERROR"


def _malformed(
    request: Request[object, object, State], error: MalformedInputError,
) -> Response[str]:
    """400 with the generic failure text."""
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, error)
    return Response(_FAILURE_TEXT, status_code=400, media_type=MediaType.TEXT)


def _storage_failure(
    request: Request[object, object, State],
    error: StorageError | QueueConflictError,
) -> Response[str]:
    """500 with the generic failure text; detail stays in the server log."""
    logger.error(
        "Storage failure on %s %s: %s", request.method, request.url.path, error,
    )
    return Response(_FAILURE_TEXT, status_code=500, media_type=MediaType.TEXT)


async def _read_text(request: Request[object, object, State]) -> str:
    """Request body as text. Terminals do not always declare a charset."""
    body = await request.body()
    return body.decode("utf-8", errors="replace")


def _client_host(request: Request[object, object, State]) -> str | None:
    """Peer address of the terminal, when the server knows it."""
    return request.client.host if request.client is not None else None


class IclockController(Controller):
    """HTTP adapter for the terminal push protocol."""

    path = "/iclock"
    # Litestar declares these as instance vars, so ClassVar would fail mypy.
    exception_handlers: ExceptionHandlersMap = {  # noqa: RUF012
        MalformedInputError: _malformed,
        StorageError: _storage_failure,
        QueueConflictError: _storage_failure,
    }

    @get("/cdata", media_type=MediaType.TEXT)
    async def check_in(
        self,
        request: Request[object, object, State],
        iclock_resource: IclockResource,
        sn: str | None = Parameter(query="SN", default=None),
        push_version: str | None = Parameter(query="pushver", default=None),
    ) -> str:
        """Terminal handshake: returns the option block."""
        return await iclock_resource.check_in(
            sn, push_version, _client_host(request),
        )

    @post("/cdata", media_type=MediaType.TEXT, status_code=200)
    async def upload(
        self,
        request: Request[object, object, State],
        iclock_resource: IclockResource,
        sn: str | None = Parameter(query="SN", default=None),
        table: str | None = Parameter(query="table", default=None),
    ) -> str:
        """Terminal uploads attendance or operation records."""
        return await iclock_resource.upload(
            sn, table, await _read_text(request), _client_host(request),
        )

    @get("/getrequest", media_type=MediaType.TEXT)
    async def get_request(
        self,
        request: Request[object, object, State],
        iclock_resource: IclockResource,
        sn: str | None = Parameter(query="SN", default=None),
    ) -> str:
        """Terminal polls for its next command."""
        return await iclock_resource.get_request(sn, _client_host(request))

    @post("/devicecmd", media_type=MediaType.TEXT, status_code=200)
    async def device_cmd(
        self,
        request: Request[object, object, State],
        iclock_resource: IclockResource,
        sn: str | None = Parameter(query="SN", default=None),
    ) -> str:
        """Terminal reports command results."""
        return await iclock_resource.device_cmd(sn, await _read_text(request))
