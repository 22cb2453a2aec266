"""Business logic for device result reports."""

from __future__ import annotations

import logging

from iclock_server.dao.command_log_dao import CommandLogDAO
from iclock_server.models.command import EXECUTED, FAILED, SENT
from iclock_server.utils.time import Time

logger = logging.getLogger("iclock.results")


class ResultService:
    """Matches asynchronous results back to sent commands.

    Devices label results with their own short code, not the command id, so
    matching is by (device, code) over rows still in ``sent``.
    """

    def __init__(
        self, log_dao: CommandLogDAO, *, success_code: str = "0",
    ) -> None:
        self._log = log_dao
        self._success_code = success_code

    def final_status(self, return_code: str) -> str:
        """``executed`` for the success sentinel, ``failed`` for anything else."""
        return EXECUTED if return_code.strip() == self._success_code else FAILED

    async def report_result(
        self, device_sn: str, code: str, return_code: str,
    ) -> dict[str, object]:
        """Finalise every sent row the report refers to.

        Unmatched reports are recorded as synthetic rows and logged; they
        never raise.

        Returns:
            Dict with the final status, the matched command ids, and whether
            the fallback row was used.

        Raises:
            StorageError: If the log cannot be read or written.
        """
        status = self.final_status(return_code)
        now = Time.now()
        updated: list[str] = []
        async with self._log.transaction():
            candidates = await self._log.find_sent_by_device_and_code(device_sn, code)
            for entry in candidates:
                if await self._log.update_status(
                    entry.command_id, status, device_sn, now,
                    expected=(SENT,), return_code=return_code,
                ):
                    updated.append(entry.command_id)
            if not updated:
                await self._log.insert_fallback(
                    code, device_sn, status, now, return_code,
                )
            await self._log.commit()

        if not updated:
            logger.warning(
                "consistency: %s reported code %s (return %s) "
                "with no matching sent command",
                device_sn, code, return_code,
            )
        else:
            logger.info(
                "%s reported code %s -> %s for %d command(s)",
                device_sn, code, status, len(updated),
            )
        return {
            "status": status,
            "command_ids": updated,
            "fallback": not updated,
        }
