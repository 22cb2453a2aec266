"""Directory resource — users enrolled on terminals and the device registry."""

from __future__ import annotations

from typing import Any

from iclock_server.resources.iclock import MalformedInputError
from iclock_server.services.device_service import DeviceService
from iclock_server.services.user_service import UserService


class DirectoryResource:
    """User CRUD and device listing for the admin application."""

    def __init__(
        self, *, user_service: UserService, device_service: DeviceService,
    ) -> None:
        self._users = user_service
        self._devices = device_service

    async def create_user(self, data: dict[str, Any]) -> dict[str, object]:
        """Register a user from ``{"pin", "name", "photo"?}``.

        Raises:
            MalformedInputError: If pin or name is missing or invalid.
            UserAlreadyExistsError: If the PIN is taken.
        """
        pin = DirectoryResource._clean_pin(data.get("pin"))
        name = DirectoryResource._optional_text(data, "name")
        if not name:
            raise MalformedInputError("name is required")
        photo = DirectoryResource._optional_text(data, "photo")
        return await self._users.register_user(pin, name, photo)

    async def update_user(
        self, pin: str, data: dict[str, Any],
    ) -> dict[str, object]:
        """Change name and/or photo.

        Raises:
            MalformedInputError: If neither field is given.
            UserNotFoundError: If the PIN is unknown.
        """
        name = DirectoryResource._optional_text(data, "name")
        photo = DirectoryResource._optional_text(data, "photo")
        if name is None and photo is None:
            raise MalformedInputError("name or photo is required")
        return await self._users.update_user(
            DirectoryResource._clean_pin(pin), name=name, photo=photo,
        )

    async def delete_user(self, pin: str) -> dict[str, str]:
        """Delete a user and queue removal from terminals."""
        return await self._users.delete_user(DirectoryResource._clean_pin(pin))

    async def get_user(self, pin: str) -> dict[str, object]:
        """Return one user."""
        return await self._users.get_user(DirectoryResource._clean_pin(pin))

    async def list_users(self) -> list[dict[str, object]]:
        """Return every user."""
        return await self._users.list_all_users()

    async def list_devices(self) -> list[dict[str, object]]:
        """Return every known terminal."""
        return await self._devices.list_devices()

    @staticmethod
    def _clean_pin(value: object) -> str:
        """PINs are embedded in tab-separated payloads, so no whitespace."""
        pin = str(value).strip() if value is not None else ""
        if not pin or any(ch.isspace() for ch in pin):
            raise MalformedInputError("pin is required and may not contain whitespace")
        return pin

    @staticmethod
    def _optional_text(data: dict[str, Any], key: str) -> str | None:
        value = data.get(key)
        if value is None:
            return None
        if not isinstance(value, str):
            raise MalformedInputError(f"'{key}' must be a string")
        return value.strip() or None
