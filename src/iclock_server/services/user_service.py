"""Business logic for the enrolled user directory."""

from __future__ import annotations

import logging

from iclock_server.dao.user_dao import UserDAO
from iclock_server.models.user import User
from iclock_server.services.queue_service import QueueService
from iclock_server.utils.payload import DeviceCode, PayloadBuilder
from iclock_server.utils.time import Time

logger = logging.getLogger("iclock.users")


class UserNotFoundError(Exception):
    """Raised when no user has the requested PIN."""


class UserAlreadyExistsError(Exception):
    """Raised when registering a PIN that is already taken."""


class UserService:
    """Built once at startup with its DAO and the queue pre-wired.

    Every directory change is turned into device payloads and queued.
    """

    def __init__(self, user_dao: UserDAO, queue_service: QueueService) -> None:
        self._dao = user_dao
        self._queue = queue_service

    async def register_user(
        self, pin: str, name: str, photo: str | None = None,
    ) -> dict[str, object]:
        """Create a user and queue their enrollment.

        Raises:
            UserAlreadyExistsError: If the PIN is taken.
        """
        async with self._dao.transaction():
            if await self._dao.find_by_pin(pin) is not None:
                raise UserAlreadyExistsError(f"User {pin} already exists")
            user = await self._dao.create_user(pin=pin, name=name, photo=photo)
            await self._dao.commit()
        records = await self._queue.enqueue(
            PayloadBuilder.enrollment(pin, name, photo),
        )
        logger.info("Registered user %s; queued %d command(s)", pin, len(records))
        return UserService._user_to_dict(user)

    async def update_user(
        self, pin: str, *, name: str | None = None, photo: str | None = None,
    ) -> dict[str, object]:
        """Change name and/or photo and queue only what changed.

        Raises:
            UserNotFoundError: If the PIN is unknown.
        """
        async with self._dao.transaction():
            user = await self._dao.find_by_pin(pin)
            if user is None:
                raise UserNotFoundError(f"User {pin} not found")
            name_changed = name is not None and name != user.name
            photo_changed = photo is not None and photo != user.photo
            await self._dao.update_user(user, name=name, photo=photo)
            await self._dao.commit()

        payloads: list[str] = []
        if name_changed:
            payloads.append(
                PayloadBuilder.user_info(DeviceCode.generate(), pin, user.name),
            )
        if photo_changed and user.photo:
            payloads.append(
                PayloadBuilder.user_photo(DeviceCode.generate(), pin, user.photo),
            )
        await self._queue.enqueue(payloads)
        return UserService._user_to_dict(user)

    async def delete_user(self, pin: str) -> dict[str, str]:
        """Remove a user and queue the device-side deletion.

        Raises:
            UserNotFoundError: If the PIN is unknown.
        """
        async with self._dao.transaction():
            if await self._dao.find_by_pin(pin) is None:
                raise UserNotFoundError(f"User {pin} not found")
            await self._dao.delete_user(pin)
            await self._dao.commit()
        records = await self._queue.enqueue(
            [PayloadBuilder.delete_user(DeviceCode.generate(), pin)],
        )
        return {"pin": pin, "command_id": records[0].id}

    async def get_user(self, pin: str) -> dict[str, object]:
        """Return one user.

        Raises:
            UserNotFoundError: If the PIN is unknown.
        """
        async with self._dao.transaction():
            user = await self._dao.find_by_pin(pin)
        if user is None:
            raise UserNotFoundError(f"User {pin} not found")
        return UserService._user_to_dict(user)

    async def list_all_users(self) -> list[dict[str, object]]:
        """Every enrolled user, ordered by PIN."""
        async with self._dao.transaction():
            users = await self._dao.list_all()
        return [UserService._user_to_dict(u) for u in users]

    async def seed_payloads(self) -> list[str]:
        """Enrollment payloads for the whole directory."""
        async with self._dao.transaction():
            users = await self._dao.list_all()
        payloads: list[str] = []
        for user in users:
            payloads.extend(PayloadBuilder.enrollment(user.pin, user.name, user.photo))
        return payloads

    @staticmethod
    def _user_to_dict(user: User) -> dict[str, object]:
        """Serialize a User to a JSON-safe dict. Photos are reported, not echoed."""
        return {
            "pin": user.pin,
            "name": user.name,
            "has_photo": bool(user.photo),
            "created_at": Time.isoformat(user.created_at),
            "updated_at": Time.isoformat(user.updated_at),
        }
